"""Aggregate task counts.

Nothing here is cached: each call runs one aggregate SELECT against the
current rows, and "overdue" is evaluated against today's date at call time.
"""

from datetime import date
from typing import Optional

from sqlalchemy import and_, case, func
from sqlmodel import Session, select

from ..models import Task, TaskPriority, TaskStatus
from ..schemas.task import TaskStats


def _count_where(condition):
    return func.count(case((condition, 1)))


def stats_statement(today: date, assigned_to: Optional[int] = None):
    statement = select(
        func.count(Task.id).label("total_tasks"),
        _count_where(Task.status == TaskStatus.TODO.value).label("todo_tasks"),
        _count_where(Task.status == TaskStatus.IN_PROGRESS.value).label("in_progress_tasks"),
        _count_where(Task.status == TaskStatus.DONE.value).label("done_tasks"),
        _count_where(Task.priority == TaskPriority.HIGH.value).label("high_priority_tasks"),
        _count_where(Task.priority == TaskPriority.MEDIUM.value).label("medium_priority_tasks"),
        _count_where(Task.priority == TaskPriority.LOW.value).label("low_priority_tasks"),
        _count_where(
            and_(Task.due_date < today, Task.status != TaskStatus.DONE.value)
        ).label("overdue_tasks"),
        _count_where(Task.assigned_to.is_(None)).label("unassigned_tasks"),
    )
    if assigned_to is not None:
        statement = statement.where(Task.assigned_to == assigned_to)
    return statement


def compute_stats(session: Session, assigned_to: Optional[int] = None, today: Optional[date] = None) -> TaskStats:
    """Counts by status, priority, overdue and unassigned.

    With ``assigned_to`` the counts cover only that user's tasks (so
    ``unassigned_tasks`` is always 0 there).
    """
    row = session.exec(stats_statement(today or date.today(), assigned_to)).one()
    return TaskStats(**{key: int(value or 0) for key, value in row._mapping.items()})
