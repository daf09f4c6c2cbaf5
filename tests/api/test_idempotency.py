from __future__ import annotations

import asyncio
from uuid import uuid4

from fastapi.testclient import TestClient

from microcourses.core.errors import AppError
from microcourses.repos import registry
from microcourses.repos.enrollment_repo import InMemoryEnrollmentRepo
from microcourses.services.idempotency import InMemoryIdempotencyStore
from tests.conftest import auth, create_course, create_user, headers, idem


def _published_course():
    return create_course(create_user("creator", approved=True), status="published")


def test_post_without_key_is_rejected_before_auth(client: TestClient) -> None:
    resp = client.post(f"/api/enroll/{uuid4()}")
    assert resp.status_code == 400
    assert resp.json()["error"] == {
        "code": "MISSING_IDEMPOTENCY_KEY",
        "message": "Idempotency-Key header is required for POST requests",
        "field": "Idempotency-Key",
    }


def test_post_with_blank_key_is_rejected(client: TestClient) -> None:
    resp = client.post(
        "/api/auth/login",
        json={"email": "a@b.co", "password": "x"},
        headers={"Idempotency-Key": "   "},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "MISSING_IDEMPOTENCY_KEY"


def test_overlong_key_is_rejected(client: TestClient) -> None:
    resp = client.post(
        "/api/auth/login",
        json={"email": "a@b.co", "password": "x"},
        headers=idem("k" * 256),
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_put_without_key_runs_normally(client: TestClient) -> None:
    creator = create_user("creator", approved=True)
    course = create_course(creator)
    resp = client.put(f"/api/courses/{course.id}", json={"title": "New"}, headers=auth(creator))
    assert resp.status_code == 200
    assert "Idempotent-Replayed" not in resp.headers


def test_put_with_key_is_replayed(client: TestClient) -> None:
    creator = create_user("creator", approved=True)
    course = create_course(creator)
    h = headers(creator, key="rename")

    first = client.put(f"/api/courses/{course.id}", json={"title": "A"}, headers=h)
    # Same key, different body: still the first response.
    second = client.put(f"/api/courses/{course.id}", json={"title": "B"}, headers=h)

    assert second.headers["Idempotent-Replayed"] == "true"
    assert second.content == first.content
    stored = asyncio.run(registry.course_repo.get(course.id))
    assert stored is not None and stored.title == "A"


def test_same_key_different_users_are_independent(client: TestClient) -> None:
    course = _published_course()
    alice, bob = create_user(), create_user()

    a = client.post(f"/api/enroll/{course.id}", headers=headers(alice, key="shared"))
    b = client.post(f"/api/enroll/{course.id}", headers=headers(bob, key="shared"))

    assert a.status_code == b.status_code == 201
    assert "Idempotent-Replayed" not in b.headers
    assert a.json()["data"]["userId"] != b.json()["data"]["userId"]


def test_error_responses_below_500_are_replayed(client: TestClient) -> None:
    learner = create_user()
    h = headers(learner, key="missing-course")
    missing = uuid4()

    first = client.post(f"/api/enroll/{missing}", headers=h)
    second = client.post(f"/api/enroll/{missing}", headers=h)

    assert first.status_code == second.status_code == 404
    assert second.headers["Idempotent-Replayed"] == "true"


class _BrokenEnrollmentRepo(InMemoryEnrollmentRepo):
    async def add(self, enrollment) -> None:
        raise AppError("database unavailable")


def test_server_errors_are_not_recorded(client: TestClient, monkeypatch) -> None:
    course = _published_course()
    learner = create_user()
    h = headers(learner, key="retry-me")

    monkeypatch.setattr(registry, "enrollment_repo", _BrokenEnrollmentRepo())
    failed = client.post(f"/api/enroll/{course.id}", headers=h)
    assert failed.status_code == 500

    monkeypatch.setattr(registry, "enrollment_repo", InMemoryEnrollmentRepo())
    retried = client.post(f"/api/enroll/{course.id}", headers=h)
    assert retried.status_code == 201
    assert "Idempotent-Replayed" not in retried.headers


def test_key_in_flight_is_conflict(
    client: TestClient, reset_idempotency_store: InMemoryIdempotencyStore
) -> None:
    course = _published_course()
    learner = create_user()
    asyncio.run(reset_idempotency_store.reserve(f"{learner.id}:busy"))

    resp = client.post(f"/api/enroll/{course.id}", headers=headers(learner, key="busy"))

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "IDEMPOTENCY_KEY_IN_USE"
    assert asyncio.run(registry.enrollment_repo.count_by_user(learner.id)) == 0


def test_non_api_paths_are_not_gated(client: TestClient) -> None:
    resp = client.post("/metrics")
    assert resp.status_code == 405


# ---- anonymous callers ----


def test_anonymous_key_does_not_replay_another_login(client: TestClient) -> None:
    client.post(
        "/api/auth/register",
        json={"email": "owner@example.com", "password": "secret1"},
        headers=idem(),
    )
    h = idem("same")

    owner = client.post(
        "/api/auth/login", json={"email": "owner@example.com", "password": "secret1"}, headers=h
    )
    stranger = client.post(
        "/api/auth/login", json={"email": "nobody@example.com", "password": "wrong1"}, headers=h
    )

    assert owner.status_code == 200 and "token" in owner.json()
    assert stranger.status_code == 401
    assert "Idempotent-Replayed" not in stranger.headers
    assert "token" not in stranger.json()
    assert stranger.json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_anonymous_retry_with_same_body_is_replayed(client: TestClient) -> None:
    body = {"email": "retry@example.com", "password": "secret1"}
    h = idem("register-once")

    first = client.post("/api/auth/register", json=body, headers=h)
    second = client.post("/api/auth/register", json=body, headers=h)

    assert first.status_code == 201
    assert second.headers["Idempotent-Replayed"] == "true"
    assert second.content == first.content
