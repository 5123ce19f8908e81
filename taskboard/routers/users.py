from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from .. import config
from ..database import Database, get_db
from ..errors import InvalidArgument, NotFound
from ..models import TaskPriority, TaskStatus
from ..schemas.user import UserCreate, UserUpdate
from ..store import UserQueryOptions, UserStore

router = APIRouter()


def get_user_store(db: Database = Depends(get_db)) -> UserStore:
    return UserStore(db)


def _require_user(store: UserStore, user_id: int):
    user = store.get(user_id)
    if user is None:
        raise NotFound("User", user_id)
    return user


@router.get("/users")
def get_users(
    search: Optional[str] = Query(None, max_length=config.SEARCH_MAX_LENGTH),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    limit: int = Query(config.DEFAULT_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    store: UserStore = Depends(get_user_store),
):
    options = UserQueryOptions(search=search, sort_by=sort_by, sort_order=sort_order, limit=limit, offset=offset)
    users = store.list(options)
    return {
        "success": True,
        "data": users,
        "meta": {"count": len(users), "limit": limit, "offset": offset},
    }


@router.get("/users/search")
def search_users(
    q: Optional[str] = Query(None, max_length=config.SEARCH_MAX_LENGTH),
    limit: int = Query(20, ge=1, le=config.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    store: UserStore = Depends(get_user_store),
):
    """Search username, email and full name."""
    if not q or not q.strip():
        raise InvalidArgument("Search term required", {"hint": "Please provide a search term"})
    users = store.search(q, limit=limit, offset=offset)
    return {
        "success": True,
        "data": users,
        "meta": {"count": len(users), "searchTerm": q.strip(), "limit": limit, "offset": offset},
    }


@router.get("/users/check-username/{username}")
def check_username_availability(username: str, store: UserStore = Depends(get_user_store)):
    username = username.strip()
    return {"success": True, "data": {"username": username, "available": store.username_available(username)}}


@router.get("/users/check-email/{email}")
def check_email_availability(email: str, store: UserStore = Depends(get_user_store)):
    email = email.strip()
    return {"success": True, "data": {"email": email, "available": store.email_available(email)}}


@router.get("/users/{user_id}")
def get_user(user_id: int, store: UserStore = Depends(get_user_store)):
    return {"success": True, "data": _require_user(store, user_id)}


@router.get("/users/{user_id}/tasks")
def get_user_tasks(
    user_id: int,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    limit: int = Query(config.DEFAULT_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    store: UserStore = Depends(get_user_store),
):
    """Tasks currently assigned to the user."""
    user = _require_user(store, user_id)
    tasks = store.assigned_tasks(
        user_id,
        status=status_filter.value if status_filter else None,
        priority=priority.value if priority else None,
        limit=limit,
        offset=offset,
    )
    return {
        "success": True,
        "data": {"user": user, "tasks": tasks},
        "meta": {"taskCount": len(tasks), "limit": limit, "offset": offset},
    }


@router.get("/users/{user_id}/stats")
def get_user_stats(user_id: int, store: UserStore = Depends(get_user_store)):
    user = _require_user(store, user_id)
    return {"success": True, "data": {"user": user, "statistics": store.stats(user_id)}}


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate, store: UserStore = Depends(get_user_store)):
    created = store.create(user)
    return {"success": True, "data": created, "message": "User created successfully"}


@router.put("/users/{user_id}")
def update_user(user_id: int, user_update: UserUpdate, store: UserStore = Depends(get_user_store)):
    updated = store.update(user_id, user_update)
    return {"success": True, "data": updated, "message": "User updated successfully"}


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, store: UserStore = Depends(get_user_store)):
    """Delete the user; their tasks stay, unassigned."""
    store.delete(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
