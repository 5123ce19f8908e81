import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, select

from ..database import Database
from ..errors import (
    ConstraintViolation,
    EmptyInput,
    EmptyUpdate,
    InvalidArgument,
    NotFound,
    ReferenceViolation,
    require_id,
)
from ..models import TASK_PRIORITIES, TASK_STATUSES, Task, TaskPriority, TaskStatus, User
from ..models.common import utcnow
from ..schemas.task import AssignedUser, TaskRead, TaskStats
from .query import TaskQueryOptions, build_task_query
from .stats import compute_stats

logger = logging.getLogger(__name__)

TASK_FIELDS = ("title", "description", "status", "priority", "due_date", "assigned_to")
BULK_FIELDS = ("status", "priority", "assigned_to")


def field_changes(data: Any, allowed: Iterable[str]) -> Dict[str, Any]:
    """Keys the caller actually supplied, limited to ``allowed``."""
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    elif not isinstance(data, Mapping):
        raise InvalidArgument("Update data must be a mapping")
    allowed = set(allowed)
    return {key: value for key, value in data.items() if key in allowed}


def _enum_value(field: str, value: Any, allowed) -> str:
    value = getattr(value, "value", value)
    if value not in allowed:
        raise ConstraintViolation(
            "Invalid status or priority value",
            {"field": field, "value": value, "allowed": list(allowed)},
        )
    return value


def normalize_task_fields(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Enum members to plain values, with the enum check applied."""
    if "title" in changes and not changes["title"]:
        raise ConstraintViolation("Title is required", {"field": "title"})
    if "status" in changes:
        changes["status"] = _enum_value("status", changes["status"], TASK_STATUSES)
    if "priority" in changes:
        changes["priority"] = _enum_value("priority", changes["priority"], TASK_PRIORITIES)
    if changes.get("assigned_to") is not None:
        changes["assigned_to"] = require_id(changes["assigned_to"], "Assigned user")
    return changes


def ensure_assignee(session: Session, user_id: Optional[int]) -> None:
    if user_id is not None and session.get(User, user_id) is None:
        raise ReferenceViolation("Assigned user does not exist", {"assigned_to": user_id})


def to_task_read(task: Task) -> TaskRead:
    """Detached projection of ``task``; call while its session is open."""
    data = {field: getattr(task, field) for field in ("id", "created_at", "updated_at") + TASK_FIELDS}
    if task.assignee is not None:
        data["assigned_user"] = AssignedUser.model_validate(task.assignee)
    return TaskRead(**data)


class TaskStore:
    """Reads and mutations for tasks.

    Every method opens its own session from the shared ``Database`` handle and
    returns ``TaskRead`` projections, never live ORM rows.
    """

    def __init__(self, database: Database):
        self.database = database

    # ---- reads ----

    def list(self, options: Optional[TaskQueryOptions] = None) -> List[TaskRead]:
        """Filtered, sorted, paginated tasks. Each call re-runs the query."""
        options = options or TaskQueryOptions()
        with self.database.session() as session:
            tasks = session.exec(build_task_query(options)).all()
            return [to_task_read(task) for task in tasks]

    def get(self, task_id: Any) -> Optional[TaskRead]:
        task_id = require_id(task_id, "Task")
        with self.database.session() as session:
            task = session.exec(
                select(Task).options(joinedload(Task.assignee)).where(Task.id == task_id)
            ).first()
            return to_task_read(task) if task is not None else None

    def list_by_status(self, status: Any) -> List[TaskRead]:
        status = _enum_value("status", status, TASK_STATUSES)
        return self.list(TaskQueryOptions(status=status, limit=None))

    def list_overdue(self) -> List[TaskRead]:
        with self.database.session() as session:
            tasks = session.exec(
                select(Task)
                .options(joinedload(Task.assignee))
                .where(Task.due_date < date.today(), Task.status != TaskStatus.DONE.value)
                .order_by(Task.due_date.asc(), Task.id.asc())
            ).all()
            return [to_task_read(task) for task in tasks]

    def stats(self) -> TaskStats:
        with self.database.session() as session:
            return compute_stats(session)

    # ---- single-task mutations ----

    def create(self, data: Any) -> TaskRead:
        """Insert a task; status and priority default to todo / medium."""
        fields = field_changes(data, TASK_FIELDS)
        fields.setdefault("status", TaskStatus.TODO.value)
        fields.setdefault("priority", TaskPriority.MEDIUM.value)
        fields = normalize_task_fields(fields)

        with self.database.session() as session:
            ensure_assignee(session, fields.get("assigned_to"))
            task = Task(**fields)
            session.add(task)
            self._commit(session)
            session.refresh(task)
            logger.info("Created task id=%s assigned_to=%s", task.id, task.assigned_to)
            return to_task_read(task)

    def update(self, task_id: Any, changes: Any) -> TaskRead:
        """Apply a partial update; keys absent from ``changes`` are left alone."""
        task_id = require_id(task_id, "Task")
        fields = normalize_task_fields(field_changes(changes, TASK_FIELDS))
        if not fields:
            raise EmptyUpdate()

        with self.database.session() as session:
            task = session.get(Task, task_id)
            if task is None:
                raise NotFound("Task", task_id)
            if "assigned_to" in fields:
                ensure_assignee(session, fields["assigned_to"])

            for field, value in fields.items():
                setattr(task, field, value)
            task.updated_at = utcnow()

            try:
                self._commit(session)
            except StaleDataError:
                # Deleted by someone else between our read and our write
                session.rollback()
                raise NotFound("Task", task_id) from None
            session.refresh(task)
            logger.info("Updated task id=%s fields=%s", task_id, sorted(fields))
            return to_task_read(task)

    def assign(self, task_id: Any, user_id: Optional[int]) -> TaskRead:
        return self.update(task_id, {"assigned_to": user_id})

    def change_status(self, task_id: Any, status: Any) -> TaskRead:
        return self.update(task_id, {"status": status})

    def change_priority(self, task_id: Any, priority: Any) -> TaskRead:
        return self.update(task_id, {"priority": priority})

    def delete(self, task_id: Any) -> None:
        task_id = require_id(task_id, "Task")
        with self.database.session() as session:
            task = session.get(Task, task_id)
            if task is None:
                raise NotFound("Task", task_id)
            session.delete(task)
            try:
                session.commit()
            except StaleDataError:
                session.rollback()
                raise NotFound("Task", task_id) from None
        logger.info("Deleted task id=%s", task_id)

    # ---- bulk ----

    def bulk_update(self, task_ids: Iterable[Any], changes: Any) -> List[TaskRead]:
        """Apply one change set to every task in ``task_ids`` in one statement.

        All or nothing: a missing id or a bad assignee fails the whole batch
        and leaves every row untouched.
        """
        if isinstance(task_ids, (str, bytes)):
            raise InvalidArgument("Task IDs must be an array", {"taskIds": task_ids})
        ids = sorted({require_id(task_id, "Task") for task_id in (task_ids or [])})
        if not ids:
            raise EmptyInput("Task IDs array is required")

        if isinstance(changes, Mapping):
            unknown = sorted(set(changes) - set(BULK_FIELDS))
            if unknown:
                raise InvalidArgument(
                    "Only status, priority and assigned_to can be bulk updated",
                    {"fields": unknown},
                )
        fields = normalize_task_fields(field_changes(changes, BULK_FIELDS))
        if not fields:
            raise EmptyInput("Update data is required")

        with self.database.transaction() as session:
            if "assigned_to" in fields:
                ensure_assignee(session, fields["assigned_to"])

            result = session.execute(
                update(Task)
                .where(Task.id.in_(ids))
                .values(**fields, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != len(ids):
                found = set(session.exec(select(Task.id).where(Task.id.in_(ids))).all())
                raise NotFound("Task", [task_id for task_id in ids if task_id not in found])

            tasks = session.exec(
                select(Task)
                .options(joinedload(Task.assignee))
                .where(Task.id.in_(ids))
                .order_by(Task.id.asc())
            ).all()
            updated = [to_task_read(task) for task in tasks]

        logger.info("Bulk updated %d tasks fields=%s", len(updated), sorted(fields))
        return updated

    # ---- helpers ----

    @staticmethod
    def _commit(session: Session) -> None:
        """Commit, turning integrity failures into store errors."""
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            error = translate_task_integrity_error(exc)
            if error is None:
                raise
            raise error from exc


def translate_task_integrity_error(exc: IntegrityError):
    message = str(exc.orig).lower()
    if "foreign key" in message:
        return ReferenceViolation("Assigned user does not exist")
    if "check" in message:
        return ConstraintViolation("Invalid status or priority value")
    return None
