import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, config
from .database import Database
from .errors import ErrorKind, StoreError
from .routers import health, tasks, users

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.REFERENCE_VIOLATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONSTRAINT_VIOLATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DUPLICATE_KEY: status.HTTP_409_CONFLICT,
    ErrorKind.EMPTY_UPDATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EMPTY_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONNECTION_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def build_error_payload(code: str, message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    payload = {"success": False, "error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = jsonable_encoder(details)
    return payload


async def store_error_handler(_: Request, exc: StoreError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_KIND[exc.kind],
        content=build_error_payload(exc.kind.value, exc.message, exc.details),
    )


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=build_error_payload("validation_failed", "Validation failed", errors),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=exc.status_code,
            content=build_error_payload("route_not_found", f"Cannot {request.method} {request.url.path}"),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_payload("http_error", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=build_error_payload("internal_error", "Internal server error"),
    )


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the API around ``database`` (a fresh handle from config if omitted)."""
    database = database or Database()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.create_tables()
        database.check_connection()
        logger.info("Task Management API %s started (database=%s)", __version__, database.engine.url)
        yield
        database.dispose()

    app = FastAPI(
        title="Task Management API",
        description="Tasks and users for a kanban task board",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.database = database

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include routers
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(tasks.router, prefix="/api", tags=["tasks"])
    app.include_router(users.router, prefix="/api", tags=["users"])

    return app


app = create_app()
