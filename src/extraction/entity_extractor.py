"""
Rule-based entity extraction for task titles and descriptions.

Each extractor is independent of the others and returns a list with set
semantics (first occurrence wins, no duplicates).
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from task_triage.models import EntityBag


# Trigger words are case-insensitive; the name itself must be capitalized.
_PEOPLE_PATTERNS = [
    re.compile(
        r"(?i:with|by|to|from|assign to|contact|meet|call)\s+"
        r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)"
    ),
    re.compile(
        r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\s+"
        r"(?i:will|should|needs to|has to)"
    ),
]

_NOT_PEOPLE = frozenset([
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
    "January", "February", "March", "April", "May", "June", "July", "August",
    "September", "October", "November", "December", "Today", "Tomorrow",
])

_DATE_PATTERNS = [
    re.compile(r"\b(today|tomorrow|tonight|yesterday)\b", re.IGNORECASE),
    re.compile(r"\b(this\s+(?:week|month|year|morning|afternoon|evening))\b", re.IGNORECASE),
    re.compile(
        r"\b(next\s+(?:week|month|year|monday|tuesday|wednesday|thursday|friday|saturday|sunday))\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})\b"),
    re.compile(
        r"\b((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{1,2}(?:st|nd|rd|th)?)\b",
        re.IGNORECASE,
    ),
    # 9:30, 9:30am, 9:30 pm; trailing whitespace is never part of the capture
    re.compile(r"\b(\d{1,2}:\d{2}(?:\s*(?:am|pm))?)\b", re.IGNORECASE),
]

_LOCATION_PATTERNS = [
    re.compile(
        r"\b(?:at|in|to|from|near)\s+(?:the\s+)?"
        r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*"
        r"(?:\s+(?:Office|Building|Room|Floor|Site|Location|Warehouse|Plant))?)\b"
    ),
    re.compile(r"\b(Room\s+\d+|Floor\s+\d+|Building\s+[A-Z])\b", re.IGNORECASE),
]

ACTION_VERBS = frozenset([
    "schedule", "meet", "call", "email", "contact", "discuss", "review",
    "prepare", "complete", "finish", "submit", "send", "create", "update",
    "fix", "repair", "install", "maintain", "inspect", "check", "verify",
    "approve", "sign", "authorize", "process", "order", "purchase", "pay",
    "deliver", "ship", "receive", "coordinate", "organize", "plan", "assign",
])

STOP_WORDS = frozenset([
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "should", "could", "may", "might", "must", "can", "this", "that",
    "these", "those", "i", "you", "he", "she", "it", "we", "they",
])

MAX_KEYWORDS = 10

_KEYWORD_RE = re.compile(r"\b[a-z]{4,}\b")
_NON_LETTER_RE = re.compile(r"[^a-z]")


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def extract_people(text: Optional[str]) -> List[str]:
    """Names following "with/by/to/..." or preceding "will/should/needs to/has to"."""
    if not text:
        return []

    found = []
    for pattern in _PEOPLE_PATTERNS:
        for match in pattern.finditer(text):
            name = match.group(1).strip()
            if name not in _NOT_PEOPLE and len(name) > 1:
                found.append(name)
    return _unique(found)


def extract_dates(text: Optional[str]) -> List[str]:
    """Relative days/periods, numeric dates, month-day phrases and clock times, lower-cased."""
    if not text:
        return []

    found = []
    for pattern in _DATE_PATTERNS:
        found.extend(m.group(1).lower() for m in pattern.finditer(text))
    return _unique(found)


def extract_locations(text: Optional[str]) -> List[str]:
    if not text:
        return []

    found = []
    for pattern in _LOCATION_PATTERNS:
        for match in pattern.finditer(text):
            location = match.group(1).strip()
            if len(location) > 2:
                found.append(location)
    return _unique(found)


def extract_actions(text: Optional[str]) -> List[str]:
    if not text:
        return []

    words = (_NON_LETTER_RE.sub("", w) for w in text.lower().split())
    return _unique(w for w in words if w in ACTION_VERBS)


def extract_keywords(text: Optional[str]) -> List[str]:
    """First MAX_KEYWORDS distinct non-stop-words of 4+ letters, in order of appearance."""
    if not text:
        return []

    words = _KEYWORD_RE.findall(text.lower())
    return _unique(w for w in words if w not in STOP_WORDS)[:MAX_KEYWORDS]


def extract_all(text: Optional[str]) -> EntityBag:
    if not text:
        return EntityBag()

    return EntityBag(
        people=extract_people(text),
        dates=extract_dates(text),
        locations=extract_locations(text),
        actions=extract_actions(text),
        keywords=extract_keywords(text),
    )
