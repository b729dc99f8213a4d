"""
Decides whether an update needs a fresh classification and merges the
result with what the task already carries.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel

from classification.task_classifier import classify
from task_triage.models import ClassificationResult, EntityBag, TaskRecord, TaskUpdate

logger = logging.getLogger(__name__)

# Only these fields feed category/entity detection.
TEXT_FIELDS = ("title", "description")


def _present_fields(updates: Union[TaskUpdate, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(updates, BaseModel):
        return updates.model_dump(exclude_unset=True)
    return dict(updates)


def _as_mapping(task: Union[TaskRecord, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(task, BaseModel):
        return task.model_dump()
    return dict(task)


def needs_reclassification(updates: Union[TaskUpdate, Mapping[str, Any]]) -> bool:
    present = _present_fields(updates)
    return any(field in present for field in TEXT_FIELDS)


def reclassify(
    old_task: Union[TaskRecord, Mapping[str, Any]],
    updates: Union[TaskUpdate, Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> ClassificationResult:
    present = _present_fields(updates)
    old = _as_mapping(old_task)

    if not needs_reclassification(present):
        return ClassificationResult(
            category=present.get("category") or old.get("category") or "general",
            priority=present.get("priority") or old.get("priority") or "low",
            extracted_entities=EntityBag.model_validate(old.get("extracted_entities") or {}),
            suggested_actions=list(old.get("suggested_actions") or []),
        )

    logger.debug(f"Text fields changed ({sorted(present)}), reclassifying")
    return classify(
        present.get("title") or old.get("title"),
        present["description"] if "description" in present else old.get("description"),
        due_date=present["due_date"] if "due_date" in present else old.get("due_date"),
        category=present.get("category"),
        priority=present.get("priority"),
        now=now,
    )
