from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from timetabler.api.routes import health
from timetabler.core.config import Settings
from timetabler.db.bootstrap import ensure_schema, schema_report


def test_health_endpoints(client, engine, monkeypatch):
    monkeypatch.setattr(health, "engine", engine)

    live = client.get("/api/health/live")
    assert live.status_code == 200
    assert live.json()["status"] == "ok"

    ready = client.get("/api/health/ready")
    assert ready.status_code == 200
    payload = ready.json()
    assert payload["status"] == "ok"
    assert payload["database"]["schema_ok"] is True


def test_ready_reports_missing_schema(client, monkeypatch):
    empty = create_engine("sqlite+pysqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    monkeypatch.setattr(health, "engine", empty)

    ready = client.get("/api/health/ready")

    assert ready.status_code == 503
    assert ready.json()["status"] == "degraded"
    assert "timetable_slots" in ready.json()["database"]["missing_tables"]
    empty.dispose()


def test_ensure_schema_creates_tables():
    fresh = create_engine("sqlite+pysqlite://", poolclass=StaticPool)

    ensure_schema(fresh)

    with fresh.connect() as connection:
        assert schema_report(connection) == ([], {})
    fresh.dispose()


def test_ready_reports_generation_grid(client, engine, monkeypatch):
    settings = Settings(_env_file=None, generation_weekdays=[2, 4], generation_blocked_cells="2:0")
    monkeypatch.setattr(health, "engine", engine)
    monkeypatch.setattr(health, "get_settings", lambda: settings)

    generation = client.get("/api/health/ready").json()["generation"]

    assert generation == {"weekdays": [2, 4], "blocked_cells": [[2, 0]], "subject_limit": 6}
