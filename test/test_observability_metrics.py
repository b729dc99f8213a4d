import logging


def test_metrics_endpoint_exposes_prometheus_text(client) -> None:
    r = client.get("/metrics")
    assert r.status_code == 200
    # Prometheus text exposition format content-type
    assert "text/plain" in r.headers.get("content-type", "")
    body = r.text
    assert "triage_requests_total" in body
    assert "triage_request_latency_seconds" in body
    assert "triage_tasks_stored" in body


def test_create_increments_request_counter(client, auth_headers) -> None:
    r = client.post("/api/tasks", json={"title": "Pay the invoice"}, headers=auth_headers)
    assert r.status_code == 201

    body = client.get("/metrics").text
    # We avoid parsing because Prometheus text parsers can be fragile across environments.
    lines = body.splitlines()
    assert any(
        line.startswith('triage_requests_total{endpoint="/api/tasks",status="created"}')
        for line in lines
    )
    assert any(
        line.startswith('triage_tasks_classified_total{category="finance",priority="low"}')
        for line in lines
    )


def test_stored_gauge_matches_store(client, auth_headers) -> None:
    client.post("/api/tasks", json={"title": "Pay the invoice"}, headers=auth_headers)
    client.post("/api/tasks", json={"title": "Fix the server"}, headers=auth_headers)

    depth = None
    for line in client.get("/metrics").text.splitlines():
        if line.startswith("triage_tasks_stored "):
            depth = line.split(" ", 1)[1].strip()
            break

    assert depth is not None, "triage_tasks_stored metric not found"
    assert int(float(depth)) == 2


def test_health_reports_in_memory_store(client) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert r.json()["store"] == "in-memory"


def test_health_is_503_when_database_unreachable(client, monkeypatch) -> None:
    from api import state
    from storage import db

    async def failing_health_check() -> dict:
        return {"status": "unhealthy", "database": "disconnected", "error": "connection refused"}

    monkeypatch.setattr(state, "db_pool", object())
    monkeypatch.setattr(db, "health_check", failing_health_check)

    r = client.get("/health")
    assert r.status_code == 503
    assert r.json()["status"] == "degraded"
    assert r.json()["store"] == "postgres"
    assert r.json()["database"]["database"] == "disconnected"


def test_requests_are_logged(client, auth_headers, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="api.main"):
        client.get("/api/tasks", headers=auth_headers)
        client.get("/api/tasks")

    messages = [rec.getMessage() for rec in caplog.records if rec.name == "api.main"]
    assert any(m.startswith("GET /api/tasks 200 ") for m in messages)
    assert any(m.startswith("GET /api/tasks 401 ") for m in messages)
