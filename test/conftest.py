from datetime import datetime, timezone

import pytest

from api.backend import TaskService
from storage.task_store import InMemoryTaskStore

FIXED_NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)
API_KEY = "test_api_key_12345"


class FakeClock:
    """Returns a fixed instant; tests advance it explicitly."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(clock) -> TaskService:
    return TaskService(InMemoryTaskStore(), clock=clock)


@pytest.fixture
def client(monkeypatch, service):
    from fastapi.testclient import TestClient

    from api import state
    from api.main import app

    monkeypatch.setenv("API_KEY", API_KEY)
    monkeypatch.setattr(state, "task_store", service.store)
    monkeypatch.setattr(state, "task_service", service)
    # tests that exercise limiting install their own limiter
    monkeypatch.setattr(state, "rate_limiter", None)
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict:
    return {"X-API-Key": API_KEY}
