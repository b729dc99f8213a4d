from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from task_triage.models import TaskFilters, TaskHistoryEntry, TaskRecord

logger = logging.getLogger(__name__)

# Columns a caller may change through update(); everything else is immutable.
UPDATABLE_COLUMNS = (
    "title",
    "description",
    "assigned_to",
    "status",
    "due_date",
    "category",
    "priority",
    "extracted_entities",
    "suggested_actions",
)
GROUPABLE_COLUMNS = ("status", "category", "priority")


class TaskStore(ABC):
    """Persistence boundary for tasks and their history log."""

    @abstractmethod
    async def create(self, task: TaskRecord) -> TaskRecord: ...

    @abstractmethod
    async def find_all(self, filters: TaskFilters) -> Tuple[List[TaskRecord], int]:
        """Return one page of matching tasks plus the total match count."""

    @abstractmethod
    async def find_by_id(self, task_id: str) -> Optional[TaskRecord]: ...

    @abstractmethod
    async def update(
        self, task_id: str, changes: Dict[str, Any], updated_at: datetime
    ) -> Optional[TaskRecord]: ...

    @abstractmethod
    async def delete(self, task_id: str) -> Optional[TaskRecord]: ...

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    async def count_by(self, column: str) -> Dict[str, int]: ...

    @abstractmethod
    async def get_history(self, task_id: str) -> List[TaskHistoryEntry]:
        """History entries for a task, newest first."""

    @abstractmethod
    async def create_history(self, entry: TaskHistoryEntry) -> Optional[TaskHistoryEntry]: ...


def _check_columns(changes: Dict[str, Any]) -> None:
    unknown = set(changes) - set(UPDATABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot update columns: {sorted(unknown)}")
    if not changes:
        raise ValueError("No fields to update")


def _matches(task: TaskRecord, filters: TaskFilters) -> bool:
    if filters.status and task.status != filters.status:
        return False
    if filters.category and task.category != filters.category:
        return False
    if filters.priority and task.priority != filters.priority:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystacks = (task.title or "", task.description or "")
        if not any(needle in h.lower() for h in haystacks):
            return False
    return True


class InMemoryTaskStore(TaskStore):
    """Process-local store. Ordering and filtering follow PostgresTaskStore."""

    def __init__(self) -> None:
        self._tasks: Dict[str, TaskRecord] = {}
        self._history: List[TaskHistoryEntry] = []
        self._lock = asyncio.Lock()

    async def create(self, task: TaskRecord) -> TaskRecord:
        async with self._lock:
            self._tasks[task.id] = task.model_copy(deep=True)
        return task.model_copy(deep=True)

    async def find_all(self, filters: TaskFilters) -> Tuple[List[TaskRecord], int]:
        async with self._lock:
            matching = [t for t in self._tasks.values() if _matches(t, filters)]

        column = filters.sort_by
        descending = filters.sort_order == "desc"

        # tie-break first (id DESC), then a stable sort on the requested column
        matching.sort(key=lambda t: t.id, reverse=True)
        # PostgreSQL puts NULLs last ascending and first descending
        matching.sort(
            key=lambda t: (getattr(t, column) is None, getattr(t, column) or ""),
            reverse=descending,
        )

        page = matching[filters.offset:filters.offset + filters.limit]
        return [t.model_copy(deep=True) for t in page], len(matching)

    async def find_by_id(self, task_id: str) -> Optional[TaskRecord]:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    async def update(
        self, task_id: str, changes: Dict[str, Any], updated_at: datetime
    ) -> Optional[TaskRecord]:
        _check_columns(changes)
        async with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            updated = TaskRecord.model_validate(
                {**task.model_dump(), **changes, "updated_at": updated_at}
            )
            self._tasks[task_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, task_id: str) -> Optional[TaskRecord]:
        async with self._lock:
            return self._tasks.pop(task_id, None)

    async def count(self) -> int:
        return len(self._tasks)

    async def count_by(self, column: str) -> Dict[str, int]:
        if column not in GROUPABLE_COLUMNS:
            raise ValueError(f"Cannot group by {column!r}")
        async with self._lock:
            return dict(Counter(getattr(t, column) for t in self._tasks.values()))

    async def get_history(self, task_id: str) -> List[TaskHistoryEntry]:
        entries = [e for e in self._history if e.task_id == task_id]
        # newest first; insertion order breaks ties between equal timestamps
        return [e for _, e in sorted(
            enumerate(entries), key=lambda pair: (pair[1].changed_at, pair[0]), reverse=True
        )]

    async def create_history(self, entry: TaskHistoryEntry) -> Optional[TaskHistoryEntry]:
        async with self._lock:
            self._history.append(entry)
        return entry


class PostgresTaskStore(TaskStore):
    """asyncpg-backed store over the tables in storage/schema.sql."""

    def __init__(self, pool) -> None:
        self._pool = pool

    @staticmethod
    def _to_task(row) -> TaskRecord:
        data = dict(row)
        data["id"] = str(data["id"])
        return TaskRecord.model_validate(data)

    @staticmethod
    def _to_history(row) -> TaskHistoryEntry:
        data = dict(row)
        data["id"] = str(data["id"])
        data["task_id"] = str(data["task_id"])
        return TaskHistoryEntry.model_validate(data)

    async def create(self, task: TaskRecord) -> TaskRecord:
        query = """
            INSERT INTO tasks (
                id, title, description, assigned_to, status, due_date, category,
                priority, extracted_entities, suggested_actions, created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            RETURNING *
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                query,
                task.id,
                task.title,
                task.description,
                task.assigned_to,
                task.status,
                task.due_date,
                task.category,
                task.priority,
                task.extracted_entities.model_dump(),
                task.suggested_actions,
                task.created_at,
                task.updated_at,
            )
        return self._to_task(row)

    async def find_all(self, filters: TaskFilters) -> Tuple[List[TaskRecord], int]:
        where = "WHERE 1=1"
        values: List[Any] = []

        for column in GROUPABLE_COLUMNS:
            value = getattr(filters, column)
            if value:
                values.append(value)
                where += f" AND {column} = ${len(values)}"

        if filters.search:
            values.append(f"%{filters.search}%")
            where += f" AND (title ILIKE ${len(values)} OR description ILIKE ${len(values)})"

        # sort_by / sort_order are Literal-validated, safe to interpolate
        order = "ASC" if filters.sort_order == "asc" else "DESC"
        page_query = (
            f"SELECT * FROM tasks {where} "
            f"ORDER BY {filters.sort_by} {order}, id DESC "
            f"LIMIT ${len(values) + 1} OFFSET ${len(values) + 2}"
        )

        async with self._pool.acquire() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM tasks {where}", *values)
            rows = await conn.fetch(page_query, *values, filters.limit, filters.offset)

        return [self._to_task(r) for r in rows], int(total)

    async def find_by_id(self, task_id: str) -> Optional[TaskRecord]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM tasks WHERE id = $1", task_id)
        return self._to_task(row) if row else None

    async def update(
        self, task_id: str, changes: Dict[str, Any], updated_at: datetime
    ) -> Optional[TaskRecord]:
        _check_columns(changes)

        assignments = []
        values: List[Any] = []
        for column, value in changes.items():
            if column == "extracted_entities" and hasattr(value, "model_dump"):
                value = value.model_dump()
            values.append(value)
            assignments.append(f"{column} = ${len(values)}")

        values.append(updated_at)
        assignments.append(f"updated_at = ${len(values)}")
        values.append(task_id)

        query = f"UPDATE tasks SET {', '.join(assignments)} WHERE id = ${len(values)} RETURNING *"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, *values)
        return self._to_task(row) if row else None

    async def delete(self, task_id: str) -> Optional[TaskRecord]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow("DELETE FROM tasks WHERE id = $1 RETURNING *", task_id)
        return self._to_task(row) if row else None

    async def count(self) -> int:
        async with self._pool.acquire() as conn:
            return int(await conn.fetchval("SELECT COUNT(*) FROM tasks"))

    async def count_by(self, column: str) -> Dict[str, int]:
        if column not in GROUPABLE_COLUMNS:
            raise ValueError(f"Cannot group by {column!r}")
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {column} AS key, COUNT(*) AS total FROM tasks GROUP BY {column}"
            )
        return {r["key"]: int(r["total"]) for r in rows}

    async def get_history(self, task_id: str) -> List[TaskHistoryEntry]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM task_history WHERE task_id = $1 ORDER BY changed_at DESC",
                task_id,
            )
        return [self._to_history(r) for r in rows]

    async def create_history(self, entry: TaskHistoryEntry) -> Optional[TaskHistoryEntry]:
        query = """
            INSERT INTO task_history (id, task_id, action, old_value, new_value, changed_by, changed_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
        """
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    query,
                    entry.id,
                    entry.task_id,
                    entry.action,
                    entry.old_value,
                    entry.new_value,
                    entry.changed_by,
                    entry.changed_at,
                )
            return self._to_history(row)
        except Exception as e:
            # a lost history entry must not fail the task operation itself
            logger.error(f"Error creating history entry for task {entry.task_id}: {e}")
            return None
