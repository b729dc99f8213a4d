import pytest

from api import state
from api.rate_limit import RateLimiter


class FakeTimer:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


def test_allows_up_to_limit_then_blocks(timer):
    limiter = RateLimiter(max_requests=3, window_seconds=60, clock=timer)

    results = [limiter.check("1.2.3.4") for _ in range(3)]
    assert all(r.allowed for r in results)
    assert [r.remaining for r in results] == [2, 1, 0]

    blocked = limiter.check("1.2.3.4")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after == pytest.approx(60)


def test_keys_have_separate_budgets(timer):
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=timer)
    assert limiter.check("a").allowed
    assert limiter.check("b").allowed
    assert not limiter.check("a").allowed


def test_window_slides(timer):
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=timer)
    limiter.check("k")
    timer.now += 30
    limiter.check("k")
    assert not limiter.check("k").allowed

    # the first hit has aged out, the second has not
    timer.now += 31
    assert limiter.check("k").allowed
    assert not limiter.check("k").allowed


def test_reset_clears_key(timer):
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=timer)
    limiter.check("k")
    limiter.reset("k")
    assert limiter.check("k").allowed


def test_api_returns_429_envelope(client, auth_headers, monkeypatch, timer):
    monkeypatch.setattr(state, "rate_limiter", RateLimiter(max_requests=2, window_seconds=900, clock=timer))

    assert client.get("/api/tasks", headers=auth_headers).status_code == 200
    assert client.get("/api/tasks", headers=auth_headers).status_code == 200

    r = client.get("/api/tasks", headers=auth_headers)
    assert r.status_code == 429
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "RATE_LIMIT_EXCEEDED"
    assert r.headers["retry-after"] == "900"


def test_limit_applies_before_auth(client, monkeypatch, timer):
    monkeypatch.setattr(state, "rate_limiter", RateLimiter(max_requests=1, window_seconds=60, clock=timer))

    assert client.get("/api/tasks").status_code == 401
    assert client.get("/api/tasks").status_code == 429


def test_health_is_not_limited(client, monkeypatch, timer):
    monkeypatch.setattr(state, "rate_limiter", RateLimiter(max_requests=1, window_seconds=60, clock=timer))

    for _ in range(3):
        assert client.get("/health").status_code == 200
