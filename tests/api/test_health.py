from __future__ import annotations

from fastapi.testclient import TestClient

from microcourses.api import health
from microcourses.db import engine as db_engine


def test_health_reports_in_memory_dependencies(client: TestClient) -> None:
    resp = client.get("/api/health")
    body = resp.json()
    assert resp.status_code == 200
    assert body["status"] == "ok"
    assert body["checks"] == {"database": "not_configured", "redis": "not_configured"}
    assert body["environment"] in ("dev", "test", "prod")
    assert body["uptime_seconds"] >= 0


def test_ready_without_database(client: TestClient) -> None:
    assert client.get("/api/ready").status_code == 200


def test_ready_fails_when_database_is_down(client: TestClient, monkeypatch) -> None:
    async def _down() -> bool:
        raise ConnectionError("db down")

    monkeypatch.setattr(db_engine, "engine", object())
    monkeypatch.setattr(db_engine, "ping_database", _down)

    assert client.get("/api/ready").status_code == 503
    body = client.get("/api/health").json()
    assert body["status"] == "degraded"
    assert body["checks"]["database"] == "degraded"


def test_health_reports_degraded_redis(client: TestClient, monkeypatch) -> None:
    class _DeadRedis:
        async def ping(self) -> bool:
            raise ConnectionError("redis down")

    monkeypatch.setattr(health, "redis_pool", _DeadRedis())
    body = client.get("/api/health").json()
    assert body["checks"]["redis"] == "degraded"
    # Redis is not critical for readiness.
    assert client.get("/api/ready").status_code == 200


def test_unknown_route_uses_error_envelope(client: TestClient) -> None:
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json() == {"error": {"code": "NOT_FOUND", "message": "Route not found"}}
