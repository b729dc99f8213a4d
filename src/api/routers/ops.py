import os
import logging

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from api import state
from api.metrics import TASKS_STORED
from storage import db

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint for container orchestration; 503 while the database is unreachable."""
    health = {
        "status": "healthy",
        "profile": os.getenv("DEPLOYMENT_PROFILE", "unknown"),
        "store": "postgres" if state.db_pool is not None else "in-memory",
    }

    if state.db_pool is not None:
        db_health = await db.health_check()
        health["database"] = db_health
        if db_health["status"] != "healthy":
            health["status"] = "degraded"
            logger.warning(f"Health check degraded: {db_health.get('error')}")
            return JSONResponse(status_code=503, content=health)

    return JSONResponse(status_code=200, content=health)


@router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus scrape endpoint.
    """
    try:
        TASKS_STORED.set(await state.task_store.count())
    except Exception as e:
        logger.warning(f"Could not refresh stored-task gauge: {e}")

    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
