from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator

from ..models import TaskPriority, TaskStatus


class AssignedUser(BaseModel):
    """Summary of the user a task is assigned to."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    full_name: str


class TaskBase(BaseModel):
    """Base task schema with common fields."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    assigned_to: Optional[PositiveInt] = None


class TaskCreate(TaskBase):
    """Schema for creating new tasks."""

    @field_validator("due_date")
    @classmethod
    def _due_in_future(cls, value: Optional[date]) -> Optional[date]:
        if value is not None and value <= date.today():
            raise ValueError("Due date must be in the future")
        return value


class TaskUpdate(BaseModel):
    """Schema for updating existing tasks.

    Omitted fields stay as they are; an explicit null clears description,
    due_date or assigned_to.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    assigned_to: Optional[PositiveInt] = None

    @model_validator(mode="after")
    def _check_fields(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        for field in ("title", "status", "priority"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class TaskAssign(BaseModel):
    assigned_to: Optional[PositiveInt] = None


class TaskStatusChange(BaseModel):
    status: TaskStatus


class TaskPriorityChange(BaseModel):
    priority: TaskPriority


class BulkChanges(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[PositiveInt] = None


class BulkUpdate(BaseModel):
    """Body of ``POST /tasks/bulk-update``."""
    model_config = ConfigDict(populate_by_name=True)

    task_ids: List[PositiveInt] = Field(alias="taskIds")
    update_data: BulkChanges = Field(alias="updateData")


class TaskRead(BaseModel):
    """Complete task schema with all fields."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[date] = None
    assigned_to: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    assigned_user: Optional[AssignedUser] = None


class TaskStats(BaseModel):
    """Point-in-time task counts."""

    total_tasks: int = 0
    todo_tasks: int = 0
    in_progress_tasks: int = 0
    done_tasks: int = 0
    high_priority_tasks: int = 0
    medium_priority_tasks: int = 0
    low_priority_tasks: int = 0
    overdue_tasks: int = 0
    unassigned_tasks: int = 0
