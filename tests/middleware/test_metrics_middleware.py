"""Tests for Prometheus metrics middleware.

Counters in the global default registry cannot be reset between tests,
so every assertion is on the DELTA around the action.
"""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import create_course, create_user, headers, idem


def _get_sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample's current value from the global registry."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/api/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/api/health")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_endpoint_label_is_route_template(client: TestClient) -> None:
    template = {"method": "GET", "endpoint": "/api/courses/{course_id}", "status_code": "404"}
    before = _get_sample("http_requests_total", template)

    client.get(f"/api/courses/{uuid4()}")
    client.get(f"/api/courses/{uuid4()}")

    assert _get_sample("http_requests_total", template) - before == 2


def test_unmatched_paths_share_one_label(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get(f"/api/{uuid4()}")
    client.get(f"/nothing/{uuid4()}")
    assert _get_sample("http_requests_total", labels) - before == 2


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/api/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/api/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before == 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/api/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "idempotency_requests_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_idempotency_outcomes_are_counted(client: TestClient) -> None:
    course = create_course(create_user("creator", approved=True), status="published")
    learner = create_user()
    h = headers(learner, key="count-me")

    def outcome(result: str) -> float:
        return _get_sample("idempotency_requests_total", {"result": result})

    before = {r: outcome(r) for r in ("executed", "replayed", "missing_key")}
    client.post(f"/api/enroll/{course.id}", headers=h)
    client.post(f"/api/enroll/{course.id}", headers=h)
    client.post(f"/api/enroll/{course.id}")

    assert outcome("executed") - before["executed"] == 1
    assert outcome("replayed") - before["replayed"] == 1
    assert outcome("missing_key") - before["missing_key"] == 1


def test_rate_limit_hits_are_counted(client: TestClient) -> None:
    before = _get_sample("rate_limit_hits_total", {"key_type": "ip"})
    for _ in range(80):
        client.post("/api/auth/login", json={"email": "a@b.co", "password": "x"}, headers=idem())
    assert _get_sample("rate_limit_hits_total", {"key_type": "ip"}) > before
