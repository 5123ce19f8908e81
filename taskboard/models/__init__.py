from .task import Task, TaskPriority, TaskStatus, TASK_PRIORITIES, TASK_STATUSES
from .user import User

# Export all models for easy importing
__all__ = ["Task", "TaskPriority", "TaskStatus", "TASK_PRIORITIES", "TASK_STATUSES", "User"]
