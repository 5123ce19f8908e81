from .query import TaskQueryOptions, UserQueryOptions, UNASSIGNED
from .tasks import TaskStore
from .users import UserStore

__all__ = ["TaskQueryOptions", "UserQueryOptions", "UNASSIGNED", "TaskStore", "UserStore"]
