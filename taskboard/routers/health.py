from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from .. import __version__
from ..database import Database, get_db

router = APIRouter()

ENDPOINTS = {
    "health": "GET /api/health",
    "users": {
        "getAll": "GET /api/users",
        "getById": "GET /api/users/{id}",
        "create": "POST /api/users",
        "update": "PUT /api/users/{id}",
        "delete": "DELETE /api/users/{id}",
        "search": "GET /api/users/search",
        "getUserTasks": "GET /api/users/{id}/tasks",
        "getUserStats": "GET /api/users/{id}/stats",
        "checkUsername": "GET /api/users/check-username/{username}",
        "checkEmail": "GET /api/users/check-email/{email}",
    },
    "tasks": {
        "getAll": "GET /api/tasks",
        "getById": "GET /api/tasks/{id}",
        "create": "POST /api/tasks",
        "update": "PUT /api/tasks/{id}",
        "delete": "DELETE /api/tasks/{id}",
        "search": "GET /api/tasks/search",
        "getByStatus": "GET /api/tasks/status/{status}",
        "getOverdue": "GET /api/tasks/overdue",
        "getStats": "GET /api/tasks/stats",
        "assign": "PATCH /api/tasks/{id}/assign",
        "changeStatus": "PATCH /api/tasks/{id}/status",
        "changePriority": "PATCH /api/tasks/{id}/priority",
        "bulkUpdate": "POST /api/tasks/bulk-update",
    },
}


@router.get("/health")
def health_check(db: Database = Depends(get_db)):
    db.check_connection()
    return {
        "success": True,
        "message": "Task Management API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
    }


@router.get("")
def api_index():
    return {
        "success": True,
        "message": "Task Management API",
        "version": __version__,
        "endpoints": ENDPOINTS,
    }
