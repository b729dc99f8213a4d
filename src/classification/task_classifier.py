from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple

from extraction.entity_extractor import extract_all
from task_triage.models import Category, ClassificationResult, Priority

logger = logging.getLogger(__name__)


# Enumeration order matters: on equal scores the first category wins.
CATEGORY_KEYWORDS: Tuple[Tuple[Category, Tuple[str, ...]], ...] = (
    ("scheduling", (
        "meeting", "schedule", "call", "appointment", "deadline", "calendar",
        "reschedule", "book", "reserve", "plan", "arrange", "coordinate",
        "session", "conference", "interview", "presentation",
    )),
    ("finance", (
        "payment", "invoice", "bill", "budget", "cost", "expense", "purchase",
        "procurement", "financial", "accounting", "revenue", "salary", "payroll",
        "transaction", "refund", "reimbursement", "vendor", "contractor",
    )),
    ("technical", (
        "bug", "fix", "error", "install", "repair", "maintain", "update",
        "upgrade", "debug", "troubleshoot", "software", "hardware", "system",
        "server", "network", "database", "code", "deploy", "configure",
    )),
    ("safety", (
        "safety", "hazard", "inspection", "compliance", "ppe", "accident",
        "incident", "emergency", "protocol", "regulation", "audit", "risk",
        "health", "security", "evacuation", "training", "certification",
    )),
)

HIGH_PRIORITY_KEYWORDS: Tuple[str, ...] = (
    "urgent", "asap", "immediately", "today", "critical", "emergency",
    "priority", "important", "crucial", "vital", "pressing", "now",
    "deadline today", "overdue",
)

MEDIUM_PRIORITY_KEYWORDS: Tuple[str, ...] = (
    "soon", "this week", "important", "upcoming", "scheduled",
    "planned", "next week", "needed", "required",
)

SUGGESTED_ACTIONS: Dict[Category, Tuple[str, ...]] = {
    "scheduling": (
        "Block calendar", "Send invite", "Prepare agenda",
        "Set reminder", "Book meeting room", "Confirm attendance",
    ),
    "finance": (
        "Check budget", "Get approval", "Generate invoice",
        "Update records", "Process payment", "Review expenses",
    ),
    "technical": (
        "Diagnose issue", "Check resources", "Assign technician",
        "Document fix", "Test solution", "Deploy update",
    ),
    "safety": (
        "Conduct inspection", "File report", "Notify supervisor",
        "Update checklist", "Schedule training", "Review protocols",
    ),
    "general": (
        "Review details", "Assign owner", "Set deadline",
        "Track progress", "Update status", "Document outcome",
    ),
}

_SECONDS_PER_DAY = 24 * 60 * 60


def _combined_text(title: Optional[str], description: Optional[str]) -> str:
    return f"{title or ''} {description or ''}"


def _as_utc(dt: datetime) -> datetime:
    # naive datetimes are taken to be UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_due_date(value: Any) -> Optional[datetime]:
    """Coerce a due date (datetime, date or ISO-8601 string) to an aware datetime.

    Anything unparseable yields None: a bad date is "no date signal", not an error.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time(), tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return _as_utc(datetime.fromisoformat(value.strip()))
        except ValueError:
            logger.debug(f"Ignoring unparseable due date {value!r}")
            return None
    return None


def days_until(due: datetime, now: datetime) -> int:
    """Whole days until due, rounded up (a due date 1 hour away is 1 day away)."""
    return math.ceil((_as_utc(due) - _as_utc(now)).total_seconds() / _SECONDS_PER_DAY)


def detect_category(title: Optional[str], description: Optional[str]) -> str:
    text = _combined_text(title, description).lower()

    best_category = "general"
    best_score = 0
    for category, keywords in CATEGORY_KEYWORDS:
        # substring match: "schedule" counts inside "unscheduled"
        score = sum(1 for keyword in keywords if keyword in text)
        if score > best_score:
            best_category, best_score = category, score

    return best_category


def detect_priority(
    title: Optional[str],
    description: Optional[str],
    due_date: Any = None,
    now: Optional[datetime] = None,
) -> str:
    text = _combined_text(title, description).lower()

    if any(keyword in text for keyword in HIGH_PRIORITY_KEYWORDS):
        return "high"
    if any(keyword in text for keyword in MEDIUM_PRIORITY_KEYWORDS):
        return "medium"

    due = parse_due_date(due_date)
    if due is not None:
        days = days_until(due, now or datetime.now(timezone.utc))
        if days <= 1:
            return "high"
        if days <= 7:
            return "medium"

    return "low"


def suggested_actions_for(category: Optional[str]) -> List[str]:
    actions = SUGGESTED_ACTIONS.get(category, SUGGESTED_ACTIONS["general"])  # type: ignore[arg-type]
    return list(actions)


def classify(
    title: Optional[str],
    description: Optional[str] = None,
    due_date: Any = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ClassificationResult:
    """Category, priority, entities and suggested actions for one task.

    A manual category/priority bypasses detection; entities are always extracted.
    """
    final_category = category or detect_category(title, description)
    final_priority: str = priority or detect_priority(title, description, due_date, now=now)

    return ClassificationResult(
        category=final_category,
        priority=final_priority,
        extracted_entities=extract_all(_combined_text(title, description)),
        suggested_actions=suggested_actions_for(final_category),
    )


class TaskClassifier:
    """Heuristic task classifier with an injectable clock."""

    def __init__(self, clock=None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def classify(
        self,
        title: Optional[str],
        description: Optional[str] = None,
        due_date: Any = None,
        category: Optional[Category] = None,
        priority: Optional[Priority] = None,
    ) -> ClassificationResult:
        result = classify(
            title,
            description,
            due_date=due_date,
            category=category,
            priority=priority,
            now=self._clock(),
        )
        logger.debug(
            f"Classified task: category={result.category} priority={result.priority}"
        )
        return result
