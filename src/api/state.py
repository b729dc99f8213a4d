from typing import Optional

import asyncpg

from api.backend import TaskService
from api.rate_limit import RateLimiter, build_rate_limiter
from storage.task_store import InMemoryTaskStore, TaskStore

# Global instances; startup swaps in the PostgreSQL store when TASK_STORE=postgres
task_store: TaskStore = InMemoryTaskStore()
task_service: TaskService = TaskService(task_store)
db_pool: Optional[asyncpg.Pool] = None
# None when RATE_LIMIT_ENABLED=false
rate_limiter: Optional[RateLimiter] = build_rate_limiter()


def use_store(store: TaskStore) -> TaskService:
    global task_store, task_service
    task_store = store
    task_service = TaskService(store)
    return task_service
