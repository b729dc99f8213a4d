from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


Category = Literal["scheduling", "finance", "technical", "safety", "general"]
Priority = Literal["high", "medium", "low"]
Status = Literal["pending", "in_progress", "completed"]
HistoryAction = Literal["created", "updated", "status_changed", "deleted"]
SortField = Literal["created_at", "updated_at", "due_date", "priority", "title"]
SortOrder = Literal["asc", "desc"]


class EntityBag(BaseModel):
    """
    Structured entities pulled out of free text.
    Every field keeps set semantics: no duplicates, first-seen order.
    """
    people: List[str] = Field(default_factory=list)
    dates: List[str] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)
    actions: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


class ClassificationResult(BaseModel):
    # str rather than Category: an unknown manual override passes through untouched
    category: str = "general"
    priority: str = "low"
    extracted_entities: EntityBag = Field(default_factory=EntityBag)
    suggested_actions: List[str] = Field(default_factory=list)


def _strip_optional(v: Optional[str]) -> Optional[str]:
    return v.strip() if isinstance(v, str) else v


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    # naive timestamps are taken as UTC
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class TaskCreate(BaseModel):
    title: str = Field(..., max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    assigned_to: Optional[str] = Field(None, max_length=200)
    due_date: Optional[datetime] = None

    category: Optional[Category] = None
    priority: Optional[Priority] = None
    status: Status = "pending"

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @field_validator("description", "assigned_to")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class TaskUpdate(BaseModel):
    """
    Partial update. Only fields the caller actually sent are "present":
    use model_dump(exclude_unset=True) to tell an explicit null from an omission.
    """
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    assigned_to: Optional[str] = Field(None, max_length=200)
    due_date: Optional[datetime] = None

    category: Optional[Category] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            raise ValueError("title cannot be empty")
        v2 = v.strip()
        if not v2:
            raise ValueError("title cannot be empty")
        return v2

    @field_validator("status")
    @classmethod
    def status_not_null(cls, v: Optional[Status]) -> Status:
        if v is None:
            raise ValueError("status cannot be null")
        return v

    @field_validator("description", "assigned_to")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "TaskUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class TaskRecord(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    status: Status = "pending"
    due_date: Optional[datetime] = None

    category: str = "general"
    priority: str = "low"
    extracted_entities: EntityBag = Field(default_factory=EntityBag)
    suggested_actions: List[str] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def timestamps_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class TaskHistoryEntry(BaseModel):
    id: str
    task_id: str
    action: HistoryAction
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    changed_by: str = "system"
    changed_at: datetime


class TaskFilters(BaseModel):
    status: Optional[Status] = None
    category: Optional[Category] = None
    priority: Optional[Priority] = None
    search: Optional[str] = Field(None, max_length=200)

    sort_by: SortField = "created_at"
    sort_order: SortOrder = "desc"

    limit: int = Field(10, ge=1, le=100)
    offset: int = Field(0, ge=0)


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    total_pages: int
    current_page: int
    has_next: bool
    has_previous: bool

    @classmethod
    def build(cls, total: int, limit: int, offset: int) -> "Pagination":
        return cls(
            total=total,
            limit=limit,
            offset=offset,
            total_pages=-(-total // limit),
            current_page=offset // limit + 1,
            has_next=offset + limit < total,
            has_previous=offset > 0,
        )
