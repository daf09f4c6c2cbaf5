from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from microcourses.core.errors import Conflict, NotFound, Unauthorized, ValidationFailed
from microcourses.models.user import User
from microcourses.repos.user_repo import InMemoryUserRepo
from microcourses.services import users_service
from microcourses.services.auth_service import verify_password


@pytest.fixture
def users() -> InMemoryUserRepo:
    return InMemoryUserRepo()


def _register(users, email="new@example.com", password="secret1", role=None) -> User:
    return asyncio.run(
        users_service.register(email=email, password=password, role=role, users=users)
    )


# ---- register ----


def test_register_defaults_to_learner(users) -> None:
    user = _register(users)
    assert user.role == "learner"
    assert user.approved_creator is False
    assert verify_password("secret1", user.password_hash)


def test_register_creator_starts_unapproved(users) -> None:
    user = _register(users, role="creator")
    assert user.role == "creator"
    assert user.is_pending_creator


def test_register_never_grants_admin(users) -> None:
    assert _register(users, role="admin").role == "learner"


def test_register_normalizes_email(users) -> None:
    user = _register(users, email="  LOUD@Example.COM ")
    assert user.email == "loud@example.com"


def test_register_duplicate_email(users) -> None:
    _register(users, email="dupe@example.com")
    with pytest.raises(Conflict) as exc_info:
        _register(users, email="DUPE@example.com")
    assert exc_info.value.field == "email"
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", "a b@c.d"])
def test_register_rejects_bad_email(users, email: str) -> None:
    with pytest.raises(ValidationFailed) as exc_info:
        _register(users, email=email)
    assert exc_info.value.field == "email"


def test_register_rejects_short_password(users) -> None:
    with pytest.raises(ValidationFailed) as exc_info:
        _register(users, password="12345")
    assert exc_info.value.code == "INVALID_PASSWORD"


# ---- login ----


def test_login_with_correct_password(users) -> None:
    created = _register(users)
    user = asyncio.run(
        users_service.login(email="NEW@example.com", password="secret1", users=users)
    )
    assert user.id == created.id


@pytest.mark.parametrize(
    "email,password",
    [("new@example.com", "wrong-password"), ("nobody@example.com", "secret1")],
    ids=["wrong-password", "unknown-email"],
)
def test_login_failures_are_indistinguishable(users, email: str, password: str) -> None:
    _register(users)
    with pytest.raises(Unauthorized) as exc_info:
        asyncio.run(users_service.login(email=email, password=password, users=users))
    assert exc_info.value.code == "INVALID_CREDENTIALS"
    assert exc_info.value.message == "Invalid credentials"


# ---- creator approval ----


def test_approve_creator(users) -> None:
    creator = _register(users, role="creator")
    approved = asyncio.run(users_service.approve_creator(creator.id, users=users))
    assert approved.approved_creator is True
    stored = asyncio.run(users.get_by_id(creator.id))
    assert stored is not None and stored.approved_creator is True


def test_approve_creator_is_idempotent(users) -> None:
    creator = _register(users, role="creator")
    asyncio.run(users_service.approve_creator(creator.id, users=users))
    again = asyncio.run(users_service.approve_creator(creator.id, users=users))
    assert again.approved_creator is True


def test_approve_learner_is_rejected(users) -> None:
    learner = _register(users)
    with pytest.raises(ValidationFailed) as exc_info:
        asyncio.run(users_service.approve_creator(learner.id, users=users))
    assert exc_info.value.code == "INVALID_ROLE"


def test_approve_unknown_user(users) -> None:
    with pytest.raises(NotFound, match="User not found"):
        asyncio.run(users_service.approve_creator(uuid4(), users=users))


def test_list_creator_applications(users) -> None:
    pending = _register(users, email="p@example.com", role="creator")
    done = _register(users, email="d@example.com", role="creator")
    _register(users, email="l@example.com")
    asyncio.run(users_service.approve_creator(done.id, users=users))

    items, total = asyncio.run(
        users_service.list_creator_applications(offset=0, limit=10, users=users)
    )
    assert total == 1
    assert [u.id for u in items] == [pending.id]
