import pytest
from pydantic import ValidationError

from task_triage.models import TaskCreate, TaskFilters, TaskUpdate


def test_task_empty_title():
    with pytest.raises(ValidationError):
        TaskCreate(title="   ")


def test_task_title_too_long():
    with pytest.raises(ValidationError):
        TaskCreate(title="x" * 501)


def test_task_description_too_long():
    with pytest.raises(ValidationError):
        TaskCreate(title="Ok", description="x" * 5001)


def test_task_invalid_category():
    with pytest.raises(ValidationError):
        TaskCreate(title="Ok", category="misc")


def test_task_invalid_due_date():
    with pytest.raises(ValidationError):
        TaskCreate(title="Ok", due_date="invalid-date")


def test_update_requires_a_field():
    with pytest.raises(ValidationError):
        TaskUpdate()


def test_update_title_cannot_be_null():
    with pytest.raises(ValidationError):
        TaskUpdate(title=None)


def test_update_status_cannot_be_null():
    with pytest.raises(ValidationError):
        TaskUpdate.model_validate({"status": None})


def test_filters_limit_bounds():
    with pytest.raises(ValidationError):
        TaskFilters(limit=0)
    with pytest.raises(ValidationError):
        TaskFilters(limit=101)
    with pytest.raises(ValidationError):
        TaskFilters(offset=-1)
