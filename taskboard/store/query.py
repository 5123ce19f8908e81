"""Build filtered, sorted and paginated SELECTs for tasks and users.

Option values only ever reach the database as bound parameters. The one
piece of caller input that shapes the statement itself, the sort field, is
looked up in a fixed column mapping; unknown names fall back to
``created_at`` and unknown directions to ``desc`` without raising.
"""

from datetime import date
from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import joinedload
from sqlmodel import or_, select

from .. import config
from ..models import Task, User

UNASSIGNED = "unassigned"
DEFAULT_SORT_FIELD = "created_at"
DEFAULT_SORT_ORDER = "desc"
SORT_ORDERS = ("asc", "desc")

TASK_SORT_COLUMNS = {
    "id": Task.id,
    "title": Task.title,
    "status": Task.status,
    "priority": Task.priority,
    "due_date": Task.due_date,
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
}

USER_SORT_COLUMNS = {
    "id": User.id,
    "username": User.username,
    "email": User.email,
    "full_name": User.full_name,
    "created_at": User.created_at,
    "updated_at": User.updated_at,
}


class QueryOptions(BaseModel):
    """Options shared by every list query.

    Keys the model does not declare are dropped on validation, so a raw
    query-string mapping can be passed straight in.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    search: Optional[str] = None
    sort_by: str = Field(DEFAULT_SORT_FIELD, alias="sortBy")
    sort_order: str = Field(DEFAULT_SORT_ORDER, alias="sortOrder")
    limit: Optional[int] = config.DEFAULT_PAGE_LIMIT
    offset: int = 0


class TaskQueryOptions(QueryOptions):
    """Task list options.

    ``assigned_to`` is either absent (no filter), ``"unassigned"`` (tasks with
    no assignee) or a user id (exact match).
    """

    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to: Optional[Union[int, Literal["unassigned"]]] = Field(None, alias="assignedTo")
    due_date_from: Optional[date] = Field(None, alias="dueDateFrom")
    due_date_to: Optional[date] = Field(None, alias="dueDateTo")


class UserQueryOptions(QueryOptions):
    pass


def resolve_sort(sort_by: Optional[str], sort_order: Optional[str], columns: Dict) -> Tuple:
    """Map a requested sort onto an allowed column and direction."""
    column = columns.get(sort_by) if isinstance(sort_by, str) else None
    if column is None:
        column = columns[DEFAULT_SORT_FIELD]
    direction = sort_order.lower() if isinstance(sort_order, str) else ""
    if direction not in SORT_ORDERS:
        direction = DEFAULT_SORT_ORDER
    return column, direction


def _order_by(column, direction: str, tiebreaker) -> List:
    if direction == "asc":
        return [column.asc(), tiebreaker.asc()]
    return [column.desc(), tiebreaker.desc()]


def _search_pattern(search: Optional[str]) -> Optional[str]:
    if search is None:
        return None
    term = search.strip()
    if not term:
        return None
    return f"%{term}%"


def task_filters(options: TaskQueryOptions) -> List:
    """WHERE criteria for ``options``; empty when nothing filters."""
    criteria = []

    if options.status:
        criteria.append(Task.status == options.status)
    if options.priority:
        criteria.append(Task.priority == options.priority)

    if options.assigned_to == UNASSIGNED:
        criteria.append(Task.assigned_to.is_(None))
    elif options.assigned_to is not None:
        criteria.append(Task.assigned_to == options.assigned_to)

    pattern = _search_pattern(options.search)
    if pattern:
        criteria.append(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    if options.due_date_from is not None:
        criteria.append(Task.due_date >= options.due_date_from)
    if options.due_date_to is not None:
        criteria.append(Task.due_date <= options.due_date_to)

    return criteria


def build_task_query(options: TaskQueryOptions):
    column, direction = resolve_sort(options.sort_by, options.sort_order, TASK_SORT_COLUMNS)
    statement = select(Task).options(joinedload(Task.assignee))
    criteria = task_filters(options)
    if criteria:
        statement = statement.where(*criteria)
    return (
        statement.order_by(*_order_by(column, direction, Task.id))
        .offset(options.offset)
        .limit(options.limit)
    )


def user_filters(options: UserQueryOptions) -> List:
    pattern = _search_pattern(options.search)
    if not pattern:
        return []
    return [
        or_(
            User.username.ilike(pattern),
            User.email.ilike(pattern),
            User.full_name.ilike(pattern),
        )
    ]


def build_user_query(options: UserQueryOptions):
    column, direction = resolve_sort(options.sort_by, options.sort_order, USER_SORT_COLUMNS)
    statement = select(User)
    criteria = user_filters(options)
    if criteria:
        statement = statement.where(*criteria)
    return (
        statement.order_by(*_order_by(column, direction, User.id))
        .offset(options.offset)
        .limit(options.limit)
    )
