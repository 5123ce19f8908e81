from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from .. import config
from ..database import Database, get_db
from ..errors import InvalidArgument, NotFound
from ..models import TaskPriority, TaskStatus
from ..schemas.task import BulkUpdate, TaskAssign, TaskCreate, TaskPriorityChange, TaskStatusChange, TaskUpdate
from ..store import TaskQueryOptions, TaskStore

router = APIRouter()

ASSIGNED_TO_PATTERN = r"^(unassigned|[1-9][0-9]*)$"


def get_task_store(db: Database = Depends(get_db)) -> TaskStore:
    return TaskStore(db)


def _enum_value(value):
    return value.value if value is not None else None


def _list_meta(tasks, options: TaskQueryOptions) -> dict:
    return {
        "count": len(tasks),
        "limit": options.limit,
        "offset": options.offset,
        "filters": {
            "status": options.status,
            "priority": options.priority,
            "assignedTo": options.assigned_to,
            "search": options.search,
            "dueDateFrom": options.due_date_from,
            "dueDateTo": options.due_date_to,
        },
        "sorting": {"sortBy": options.sort_by, "sortOrder": options.sort_order},
    }


def _list_options(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    assigned_to: Optional[str] = Query(None, alias="assignedTo", pattern=ASSIGNED_TO_PATTERN),
    due_date_from: Optional[date] = Query(None, alias="dueDateFrom"),
    due_date_to: Optional[date] = Query(None, alias="dueDateTo"),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    limit: int = Query(config.DEFAULT_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
) -> TaskQueryOptions:
    return TaskQueryOptions(
        status=_enum_value(status_filter),
        priority=_enum_value(priority),
        assigned_to=assigned_to,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )


@router.get("/tasks")
def get_tasks(
    options: TaskQueryOptions = Depends(_list_options),
    search: Optional[str] = Query(None, max_length=config.SEARCH_MAX_LENGTH),
    store: TaskStore = Depends(get_task_store),
):
    """Get all tasks with filtering, searching and sorting."""
    options = options.model_copy(update={"search": search})
    tasks = store.list(options)
    return {"success": True, "data": tasks, "meta": _list_meta(tasks, options)}


@router.get("/tasks/search")
def search_tasks(
    q: Optional[str] = Query(None, max_length=config.SEARCH_MAX_LENGTH),
    options: TaskQueryOptions = Depends(_list_options),
    store: TaskStore = Depends(get_task_store),
):
    """Search title and description, combined with the usual filters."""
    if not q or not q.strip():
        raise InvalidArgument("Search term required", {"hint": "Please provide a search term"})
    options = options.model_copy(update={"search": q.strip()})
    tasks = store.list(options)
    meta = _list_meta(tasks, options)
    meta["searchTerm"] = q.strip()
    return {"success": True, "data": tasks, "meta": meta}


@router.get("/tasks/stats")
def get_task_stats(store: TaskStore = Depends(get_task_store)):
    return {"success": True, "data": store.stats()}


@router.get("/tasks/overdue")
def get_overdue_tasks(store: TaskStore = Depends(get_task_store)):
    tasks = store.list_overdue()
    return {"success": True, "data": tasks, "meta": {"count": len(tasks), "type": "overdue"}}


@router.get("/tasks/status/{task_status}")
def get_tasks_by_status(task_status: TaskStatus, store: TaskStore = Depends(get_task_store)):
    tasks = store.list_by_status(task_status)
    return {"success": True, "data": tasks, "meta": {"count": len(tasks), "status": task_status.value}}


@router.post("/tasks/bulk-update")
def bulk_update_tasks(payload: BulkUpdate, store: TaskStore = Depends(get_task_store)):
    """Apply one change set to many tasks; all succeed or none do."""
    tasks = store.bulk_update(payload.task_ids, payload.update_data)
    return {
        "success": True,
        "data": tasks,
        "message": f"{len(tasks)} tasks updated successfully",
    }


@router.get("/tasks/{task_id}")
def get_task(task_id: int, store: TaskStore = Depends(get_task_store)):
    task = store.get(task_id)
    if task is None:
        raise NotFound("Task", task_id)
    return {"success": True, "data": task}


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
def create_task(task: TaskCreate, store: TaskStore = Depends(get_task_store)):
    created = store.create(task)
    return {"success": True, "data": created, "message": "Task created successfully"}


@router.put("/tasks/{task_id}")
def update_task(task_id: int, task_update: TaskUpdate, store: TaskStore = Depends(get_task_store)):
    """Update only the fields present in the body."""
    updated = store.update(task_id, task_update)
    return {"success": True, "data": updated, "message": "Task updated successfully"}


@router.patch("/tasks/{task_id}/assign")
def assign_task(task_id: int, payload: TaskAssign, store: TaskStore = Depends(get_task_store)):
    updated = store.assign(task_id, payload.assigned_to)
    message = "Task assigned successfully" if payload.assigned_to else "Task unassigned successfully"
    return {"success": True, "data": updated, "message": message}


@router.patch("/tasks/{task_id}/status")
def change_task_status(task_id: int, payload: TaskStatusChange, store: TaskStore = Depends(get_task_store)):
    updated = store.change_status(task_id, payload.status)
    return {"success": True, "data": updated, "message": "Task status updated successfully"}


@router.patch("/tasks/{task_id}/priority")
def change_task_priority(task_id: int, payload: TaskPriorityChange, store: TaskStore = Depends(get_task_store)):
    updated = store.change_priority(task_id, payload.priority)
    return {"success": True, "data": updated, "message": "Task priority updated successfully"}


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: int, store: TaskStore = Depends(get_task_store)):
    store.delete(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
