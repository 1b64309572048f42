"""
FastAPI application for the TaskHub REST API

Exposes the task collection under /api/v1 with list/create/get/update/delete
endpoints and a health check. The settings object and TaskDatabase are built
once at startup and injected through app.state, so every request handler
receives them explicitly.
"""

import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .database import StorageError, TaskDatabase
from .models import (
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    TaskPayload,
    TaskResponse,
    TASK_STATUSES,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
TASK_NOT_FOUND = "Task not found"

TASK_ID_PATTERN = re.compile(r"-?[0-9]+")
SQLITE_MIN_INTEGER = -2 ** 63
SQLITE_MAX_INTEGER = 2 ** 63 - 1

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def get_database(request: Request) -> TaskDatabase:
    """FastAPI dependency returning the database opened at startup."""
    return request.app.state.database


def get_settings(request: Request) -> Settings:
    """FastAPI dependency returning the loaded settings."""
    return request.app.state.settings


def parse_task_id(task_id: str) -> int:
    """
    Convert a path id to an integer row id.

    Only plain ASCII decimal text within SQLite's 64-bit range can match a row;
    anything else is answered as not found.
    """
    if not TASK_ID_PATTERN.fullmatch(task_id):
        raise HTTPException(status_code=404, detail=TASK_NOT_FOUND)
    value = int(task_id)
    if not SQLITE_MIN_INTEGER <= value <= SQLITE_MAX_INTEGER:
        raise HTTPException(status_code=404, detail=TASK_NOT_FOUND)
    return value


def storage_failure(action: str, exc: StorageError) -> HTTPException:
    logger.error(f"Failed to {action}: {exc}")
    return HTTPException(status_code=500, detail=str(exc))


router = APIRouter(prefix=API_PREFIX)


@router.get("/health", response_model=HealthResponse)
def health_check(settings: Settings = Depends(get_settings)):
    """Liveness probe: always healthy once the process is serving."""
    return HealthResponse(
        status="healthy",
        version=settings.app.version,
        timestamp=datetime.now(timezone.utc).isoformat()
    )


@router.get("/tasks", response_model=List[TaskResponse])
def list_tasks(db: TaskDatabase = Depends(get_database)):
    """
    List every task, newest first.

    Raises:
        HTTPException: 500 if the database query fails
    """
    try:
        rows = db.list_tasks()
    except StorageError as e:
        raise storage_failure("list tasks", e)
    return [TaskResponse.from_row(row) for row in rows]


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(payload: TaskPayload, db: TaskDatabase = Depends(get_database)):
    """
    Create a task. An empty or absent status becomes "pending".

    Raises:
        HTTPException: 500 if the insert fails (400s come from body validation)
    """
    payload = payload.for_create()
    if payload.status not in TASK_STATUSES:
        logger.debug(f"Storing task with unconventional status {payload.status!r}")

    try:
        row = db.insert_task(payload.title, payload.description, payload.status)
    except StorageError as e:
        raise storage_failure("create task", e)

    logger.info(f"Task {row['id']} created with status {row['status']}")
    return TaskResponse.from_row(row)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(task_id: str, db: TaskDatabase = Depends(get_database)):
    """
    Get one task by id.

    Raises:
        HTTPException: 404 if no task has that id, 500 on storage failure
    """
    task_id = parse_task_id(task_id)
    try:
        row = db.get_task(task_id)
    except StorageError as e:
        raise storage_failure(f"get task {task_id}", e)

    if row is None:
        logger.debug(f"Task {task_id} not found")
        raise HTTPException(status_code=404, detail=TASK_NOT_FOUND)
    return TaskResponse.from_row(row)


@router.put("/tasks/{task_id}", response_model=TaskResponse)
def update_task(task_id: str, payload: TaskPayload, db: TaskDatabase = Depends(get_database)):
    """
    Replace title, description and status of a task.

    Unlike create, status is stored exactly as sent, including "".

    Raises:
        HTTPException: 404 if no task has that id, 500 on storage failure
    """
    task_id = parse_task_id(task_id)
    try:
        row = db.update_task(task_id, payload.title, payload.description, payload.status)
    except StorageError as e:
        raise storage_failure(f"update task {task_id}", e)

    if row is None:
        logger.debug(f"Task {task_id} not found for update")
        raise HTTPException(status_code=404, detail=TASK_NOT_FOUND)

    logger.info(f"Task {task_id} updated, status now {row['status']!r}")
    return TaskResponse.from_row(row)


@router.delete("/tasks/{task_id}", response_model=MessageResponse)
def delete_task(task_id: str, db: TaskDatabase = Depends(get_database)):
    """
    Delete a task permanently.

    Raises:
        HTTPException: 404 if no task has that id, 500 on storage failure
    """
    task_id = parse_task_id(task_id)
    try:
        deleted = db.delete_task(task_id)
    except StorageError as e:
        raise storage_failure(f"delete task {task_id}", e)

    if not deleted:
        logger.debug(f"Task {task_id} not found for delete")
        raise HTTPException(status_code=404, detail=TASK_NOT_FOUND)

    logger.info(f"Task {task_id} deleted")
    return MessageResponse(message="Task deleted successfully")


async def cors_middleware(request: Request, call_next):
    """
    Add wildcard CORS headers to every response.

    Preflight OPTIONS requests are answered with 204 before routing. The
    configured origin list is not consulted.
    """
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)

    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or mistyped request bodies are client errors (400)."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="; ".join(messages)).model_dump()
    )


async def general_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.

    Runs outside the CORS middleware, so the headers are added here.
    """
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error").model_dump(),
        headers=CORS_HEADERS
    )


def create_app(settings: Settings, database: TaskDatabase) -> FastAPI:
    """
    Build the FastAPI application around an already opened database.

    Args:
        settings: Loaded settings document
        database: Open TaskDatabase shared by all requests

    Returns:
        Configured FastAPI app; the database is closed when the app shuts down
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"{settings.app.name} API starting up...")
        logger.info("Available endpoints:")
        for route in router.routes:
            methods = ", ".join(sorted(route.methods))
            logger.info(f"  {methods} {route.path}")

        yield

        database.close()
        logger.info("Database connection closed")

    app = FastAPI(
        title=settings.app.name,
        description="REST API for managing task records",
        version=settings.app.version,
        debug=settings.app.environment.lower() == "development",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.database = database

    app.middleware("http")(cors_middleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
    app.include_router(router)

    return app
