from __future__ import annotations

import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import microcourses` and
# `from tests.conftest import ...` work under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from microcourses.api.ratelimit import _rate_limiter  # noqa: E402
from microcourses.main import app  # noqa: E402
from microcourses.models.course import Course, LessonDraft  # noqa: E402
from microcourses.models.user import User  # noqa: E402
from microcourses.repos import registry  # noqa: E402
from microcourses.repos.certificate_repo import InMemoryCertificateRepo  # noqa: E402
from microcourses.repos.course_repo import InMemoryCourseRepo  # noqa: E402
from microcourses.repos.enrollment_repo import InMemoryEnrollmentRepo  # noqa: E402
from microcourses.repos.user_repo import InMemoryUserRepo  # noqa: E402
from microcourses.services import idempotency, token_service  # noqa: E402
from microcourses.services.idempotency import InMemoryIdempotencyStore  # noqa: E402


@pytest.fixture(autouse=True)
def reset_repos(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fresh in-memory repositories for every test."""
    monkeypatch.setattr(registry, "user_repo", InMemoryUserRepo())
    monkeypatch.setattr(registry, "course_repo", InMemoryCourseRepo())
    monkeypatch.setattr(registry, "enrollment_repo", InMemoryEnrollmentRepo())
    monkeypatch.setattr(registry, "certificate_repo", InMemoryCertificateRepo())


@pytest.fixture(autouse=True)
def reset_idempotency_store(monkeypatch: pytest.MonkeyPatch) -> InMemoryIdempotencyStore:
    store = InMemoryIdempotencyStore()
    monkeypatch.setattr(idempotency, "idempotency_store", store)
    return store


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit buckets between tests so limits don't bleed."""
    if hasattr(_rate_limiter, "_buckets"):
        _rate_limiter._buckets.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def mint_token(user: User) -> str:
    """Create a valid ES256 access token for a stored user."""
    return token_service.create_access_token(sub=str(user.id), role=user.role)


def create_user(
    role: str = "learner", *, approved: bool = False, email: str | None = None
) -> User:
    """Persist a user directly in the current in-memory repo."""
    user = User.new(
        email=email or f"{role}-{uuid4().hex[:8]}@test.com",
        password_hash="x",
        role=role,
        approved_creator=approved,
    )
    asyncio.run(registry.user_repo.add(user))
    return user


def create_course(
    creator: User,
    *,
    status: str = "draft",
    lessons: int = 0,
    title: str = "Course",
    description: str = "About the course",
) -> Course:
    course = replace(
        Course.new(title=title, description=description, creator_id=creator.id),
        status=status,
    )
    asyncio.run(registry.course_repo.add(course))
    for i in range(lessons):
        asyncio.run(
            registry.course_repo.append_lesson(
                course.id, LessonDraft(title=f"Lesson {i + 1}", content=f"Content {i + 1}")
            )
        )
    stored = asyncio.run(registry.course_repo.get(course.id))
    assert stored is not None
    return stored


def auth(user: User | None) -> dict[str, str]:
    if user is None:
        return {}
    return {"Authorization": f"Bearer {mint_token(user)}"}


def idem(key: str | None = None) -> dict[str, str]:
    return {"Idempotency-Key": key or uuid4().hex}


def headers(user: User | None = None, *, key: str | None = None) -> dict[str, str]:
    """Auth + a fresh (or given) idempotency key."""
    return {**auth(user), **idem(key)}
