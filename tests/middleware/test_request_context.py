"""Tests for the request context middleware.

Verifies that every response gets:
- An X-Request-ID header (generated or echoed from the request)
- The request id on log records emitted while handling it
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from tests.conftest import idem


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/api/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/api/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/api/progress")  # No auth token → 401
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_request_id_present_on_gate_rejections(client: TestClient) -> None:
    resp = client.post("/api/auth/login", json={})  # no Idempotency-Key → 400
    assert resp.status_code == 400
    assert resp.headers.get("x-request-id") is not None


def test_request_id_present_on_replays(client: TestClient) -> None:
    body = {"email": "x@example.com", "password": "whatever"}
    h = idem("login-replay")
    client.post("/api/auth/login", json=body, headers=h)
    resp = client.post("/api/auth/login", json=body, headers={**h, "X-Request-ID": "r-2"})
    assert resp.headers["Idempotent-Replayed"] == "true"
    assert resp.headers["x-request-id"] == "r-2"


def test_completion_log_carries_request_fields(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="microcourses.middleware.request_context"):
        client.get("/api/health", headers={"X-Request-ID": "trace-me"})

    records = [r for r in caplog.records if getattr(r, "path", None) == "/api/health"]
    assert records
    assert records[-1].request_id == "trace-me"  # type: ignore[attr-defined]
    assert records[-1].status_code == 200  # type: ignore[attr-defined]
