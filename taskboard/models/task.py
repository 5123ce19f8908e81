from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import CheckConstraint, Column, Text
from datetime import date, datetime
from typing import Optional
import enum

from .common import utcnow


class TaskStatus(str, enum.Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


TASK_STATUSES = tuple(s.value for s in TaskStatus)
TASK_PRIORITIES = tuple(p.value for p in TaskPriority)


def _in_clause(column: str, values) -> str:
    return "{} IN ({})".format(column, ", ".join("'{}'".format(v) for v in values))


class Task(SQLModel, table=True):
    """A unit of work on the board.

    ``assigned_to`` has no database-level ON DELETE rule; user deletion clears
    it explicitly (see ``UserStore.delete``).
    """
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(_in_clause("status", TASK_STATUSES), name="tasks_status_check"),
        CheckConstraint(_in_clause("priority", TASK_PRIORITIES), name="tasks_priority_check"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    status: str = Field(default=TaskStatus.TODO.value, max_length=20, index=True)
    priority: str = Field(default=TaskPriority.MEDIUM.value, max_length=10, index=True)
    due_date: Optional[date] = Field(default=None, index=True)
    assigned_to: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationship back to the assigned user
    assignee: Optional["User"] = Relationship(back_populates="tasks")
