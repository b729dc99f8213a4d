import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api import state
from api.errors import register_error_handlers
from api.routers import ops, tasks
from storage import db
from storage.task_store import PostgresTaskStore

# Logging configuration
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

TASK_STORE = os.getenv("TASK_STORE", "memory").strip().lower()
CORS_ALLOW_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()
]

app = FastAPI(title="Task Triage")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-Key", "Accept", "Origin"],
)
register_error_handlers(app)
app.include_router(ops.router)
app.include_router(tasks.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
    except Exception:
        duration_ms = (time.time() - start) * 1000
        logger.error(f"{request.method} {request.url.path} failed after {duration_ms:.0f}ms")
        raise

    duration_ms = (time.time() - start) * 1000
    client_ip = request.client.host if request.client else "unknown"
    logger.info(
        f"{request.method} {request.url.path} {response.status_code} {duration_ms:.0f}ms ip={client_ip}"
    )
    return response


@app.on_event("startup")
async def startup() -> None:
    if not os.getenv("API_KEY"):
        logger.warning("API_KEY is not set; authenticated endpoints will return 500")

    if TASK_STORE == "postgres":
        state.db_pool = await db.init_db_pool()
        await db.init_schema()
        state.use_store(PostgresTaskStore(state.db_pool))
        logger.info("Using PostgreSQL task store")
    else:
        logger.info("Using in-memory task store")


@app.on_event("shutdown")
async def shutdown() -> None:
    if state.db_pool is not None:
        await db.close_db_pool()
        state.db_pool = None
