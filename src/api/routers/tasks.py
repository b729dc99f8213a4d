import logging
import time
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from api.backend import TaskService
from api.dependencies import enforce_rate_limit, get_task_service, require_api_key
from api.errors import NotFoundError, success
from api.metrics import REQUESTS_TOTAL, REQUEST_LATENCY_SECONDS, TASKS_STORED
from task_triage.models import (
    Category,
    Priority,
    SortField,
    SortOrder,
    Status,
    TaskCreate,
    TaskFilters,
    TaskUpdate,
)

router = APIRouter(
    prefix="/api",
    dependencies=[Depends(enforce_rate_limit), Depends(require_api_key)],
)
logger = logging.getLogger(__name__)


def _observe(endpoint: str, status: str, start: float) -> None:
    REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
    REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - start)


async def _refresh_stored_gauge(service: TaskService) -> None:
    TASKS_STORED.set(await service.store.count())


@router.post("/classify")
async def classify_preview(
    payload: TaskCreate,
    service: TaskService = Depends(get_task_service),
) -> dict:
    """Run classification without storing anything."""
    start = time.time()
    result = service.classify(payload)
    _observe("/api/classify", "ok", start)
    return success({"classification": result.model_dump(mode="json")})


@router.get("/tasks/stats")
async def get_statistics(service: TaskService = Depends(get_task_service)) -> dict:
    start = time.time()
    stats = await service.get_statistics()
    _observe("/api/tasks/stats", "ok", start)
    return success({"statistics": stats})


@router.post("/tasks", status_code=201)
async def create_task(
    payload: TaskCreate,
    service: TaskService = Depends(get_task_service),
) -> dict:
    start = time.time()
    logger.info(f"Creating new task: {payload.title!r}")

    task = await service.create_task(payload)
    await _refresh_stored_gauge(service)

    _observe("/api/tasks", "created", start)
    return success({"task": task.model_dump(mode="json")}, "Task created successfully")


@router.get("/tasks")
async def list_tasks(
    status: Optional[Status] = None,
    category: Optional[Category] = None,
    priority: Optional[Priority] = None,
    search: Optional[str] = Query(None, max_length=200),
    sort_by: SortField = Query("created_at", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: TaskService = Depends(get_task_service),
) -> dict:
    start = time.time()
    filters = TaskFilters(
        status=status,
        category=category,
        priority=priority,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    tasks, pagination = await service.list_tasks(filters)

    _observe("/api/tasks", "listed", start)
    return success({
        "tasks": [t.model_dump(mode="json") for t in tasks],
        "pagination": pagination.model_dump(),
    })


@router.get("/tasks/{task_id}")
async def get_task(task_id: UUID, service: TaskService = Depends(get_task_service)) -> dict:
    start = time.time()
    result = await service.get_task(str(task_id))
    if result is None:
        _observe("/api/tasks/{id}", "not_found", start)
        raise NotFoundError(f"Task with ID {task_id} not found")

    _observe("/api/tasks/{id}", "ok", start)
    return success({
        "task": result["task"].model_dump(mode="json"),
        "history": [h.model_dump(mode="json") for h in result["history"]],
    })


@router.patch("/tasks/{task_id}")
async def update_task(
    task_id: UUID,
    payload: TaskUpdate,
    service: TaskService = Depends(get_task_service),
) -> dict:
    start = time.time()
    logger.info(f"Updating task {task_id}: fields={sorted(payload.model_fields_set)}")

    task = await service.update_task(str(task_id), payload)
    if task is None:
        _observe("/api/tasks/{id}", "not_found", start)
        raise NotFoundError(f"Task with ID {task_id} not found")

    _observe("/api/tasks/{id}", "updated", start)
    return success({"task": task.model_dump(mode="json")}, "Task updated successfully")


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: UUID, service: TaskService = Depends(get_task_service)) -> dict:
    start = time.time()
    task = await service.delete_task(str(task_id))
    if task is None:
        _observe("/api/tasks/{id}", "not_found", start)
        raise NotFoundError(f"Task with ID {task_id} not found")

    await _refresh_stored_gauge(service)
    _observe("/api/tasks/{id}", "deleted", start)
    return success(None, "Task deleted successfully")
