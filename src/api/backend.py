import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from api.metrics import RECLASSIFICATIONS_TOTAL, TASKS_CLASSIFIED_TOTAL
from classification.reclassification import needs_reclassification, reclassify
from classification.task_classifier import TaskClassifier
from storage.task_store import TaskStore
from task_triage.models import (
    ClassificationResult,
    Pagination,
    TaskCreate,
    TaskFilters,
    TaskHistoryEntry,
    TaskRecord,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

# Snapshot written to the history log when a task is created or deleted.
_SUMMARY_FIELDS = ("title", "category", "priority", "status")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskService:
    """Central orchestration component: classification + persistence + history."""

    def __init__(self, store: TaskStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or _utcnow
        self.classifier = TaskClassifier(clock=self.clock)

    async def _record_history(
        self,
        task_id: str,
        action: str,
        old_value: Optional[dict],
        new_value: Optional[dict],
        changed_by: str = "system",
    ) -> None:
        await self.store.create_history(
            TaskHistoryEntry(
                id=str(uuid.uuid4()),
                task_id=task_id,
                action=action,
                old_value=old_value,
                new_value=new_value,
                changed_by=changed_by,
                changed_at=self.clock(),
            )
        )

    def classify(self, payload: TaskCreate) -> ClassificationResult:
        """Classification preview; nothing is stored."""
        return self.classifier.classify(
            payload.title,
            payload.description,
            due_date=payload.due_date,
            category=payload.category,
            priority=payload.priority,
        )

    async def create_task(self, payload: TaskCreate) -> TaskRecord:
        classification = self.classify(payload)
        now = self.clock()

        task = TaskRecord(
            id=str(uuid.uuid4()),
            title=payload.title,
            description=payload.description,
            assigned_to=payload.assigned_to,
            status=payload.status,
            due_date=payload.due_date,
            category=classification.category,
            priority=classification.priority,
            extracted_entities=classification.extracted_entities,
            suggested_actions=classification.suggested_actions,
            created_at=now,
            updated_at=now,
        )
        task = await self.store.create(task)
        await self._record_history(
            task.id, "created", None, task.model_dump(mode="json", include=set(_SUMMARY_FIELDS))
        )
        TASKS_CLASSIFIED_TOTAL.labels(category=task.category, priority=task.priority).inc()

        logger.info(
            f"Task created: id={task.id} category={task.category} priority={task.priority}"
        )
        return task

    async def list_tasks(self, filters: TaskFilters) -> Tuple[List[TaskRecord], Pagination]:
        tasks, total = await self.store.find_all(filters)
        logger.info(f"Tasks retrieved: count={len(tasks)} total={total}")
        return tasks, Pagination.build(total, filters.limit, filters.offset)

    async def get_task(self, task_id: str) -> Optional[Dict[str, object]]:
        task = await self.store.find_by_id(task_id)
        if task is None:
            return None

        history = await self.store.get_history(task_id)
        return {"task": task, "history": history}

    async def update_task(self, task_id: str, payload: TaskUpdate) -> Optional[TaskRecord]:
        old_task = await self.store.find_by_id(task_id)
        if old_task is None:
            return None

        updates = payload.model_dump(exclude_unset=True)
        recompute = needs_reclassification(updates)
        classification = reclassify(old_task, updates, now=self.clock())
        RECLASSIFICATIONS_TOTAL.labels(recomputed=str(recompute).lower()).inc()

        changes = dict(updates)
        changes["category"] = classification.category
        changes["priority"] = classification.priority
        if recompute:
            changes["extracted_entities"] = classification.extracted_entities
            changes["suggested_actions"] = classification.suggested_actions

        updated = await self.store.update(task_id, changes, updated_at=self.clock())
        if updated is None:
            # deleted between read and write
            return None

        old_json = old_task.model_dump(mode="json")
        new_json = updated.model_dump(mode="json")
        changed = [key for key in updates if old_json.get(key) != new_json.get(key)]
        if changed:
            action = "status_changed" if "status" in changed else "updated"
            await self._record_history(task_id, action, old_json, new_json, changed_by="user")

        logger.info(f"Task updated: id={task_id} fields={sorted(updates)} reclassified={recompute}")
        return updated

    async def delete_task(self, task_id: str) -> Optional[TaskRecord]:
        task = await self.store.delete(task_id)
        if task is None:
            return None

        await self._record_history(
            task_id, "deleted", task.model_dump(mode="json", include={"title", "status"}), None
        )
        logger.info(f"Task deleted: id={task_id}")
        return task

    async def get_statistics(self) -> Dict[str, object]:
        return {
            "by_status": await self.store.count_by("status"),
            "by_category": await self.store.count_by("category"),
            "by_priority": await self.store.count_by("priority"),
            "total": await self.store.count(),
        }
