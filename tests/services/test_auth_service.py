from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from argon2 import PasswordHasher

from microcourses.models.user import User
from microcourses.repos.user_repo import InMemoryUserRepo
from microcourses.services import token_service
from microcourses.services.auth_service import (
    authenticate_user,
    hash_password,
    verify_password,
)


def test_authenticate_user_rehashes_when_needed() -> None:
    # Create a user with a deliberately "weak/old" Argon2 configuration.
    old_ph = PasswordHasher(time_cost=1, memory_cost=8 * 1024, parallelism=1)
    password = "pw1234"
    old_hash = old_ph.hash(password)

    repo = InMemoryUserRepo()
    asyncio.run(repo.add(User.new(email="tee@example.com", password_hash=old_hash)))

    authed = asyncio.run(authenticate_user(repo, "tee@example.com", password))
    assert authed is not None

    stored = asyncio.run(repo.get_by_email("tee@example.com"))
    assert stored is not None
    assert stored.password_hash != old_hash
    assert verify_password(password, stored.password_hash)


def test_authenticate_user_wrong_password() -> None:
    repo = InMemoryUserRepo()
    asyncio.run(repo.add(User.new(email="a@example.com", password_hash=hash_password("right1"))))
    assert asyncio.run(authenticate_user(repo, "a@example.com", "wrong1")) is None


def test_verify_password_handles_garbage_hash() -> None:
    assert verify_password("pw", "not-an-argon2-hash") is False
    assert verify_password("", "whatever") is False


def test_hash_password_rejects_empty() -> None:
    with pytest.raises(ValueError):
        hash_password("")


# ---- tokens ----


def test_token_round_trip_claims() -> None:
    token = token_service.create_access_token(sub="user-1", role="creator")
    claims = token_service.decode_access_token(token)
    assert claims["sub"] == "user-1"
    assert claims["role"] == "creator"
    assert claims["iss"] == "microcourses"
    assert claims["aud"] == "microcourses-api"
    assert claims["exp"] - claims["iat"] == 60 * 60


def test_expired_token_is_rejected() -> None:
    token = token_service.create_access_token(sub="u", role="learner", ttl_minutes=-1)
    with pytest.raises(jwt.ExpiredSignatureError):
        token_service.decode_access_token(token)


def test_hs256_token_is_rejected() -> None:
    forged = jwt.encode(
        {
            "sub": "u",
            "iss": "microcourses",
            "aud": "microcourses-api",
            "exp": datetime.now(UTC) + timedelta(minutes=5),
            "iat": datetime.now(UTC),
            "jti": "x",
        },
        "secret",
        algorithm="HS256",
    )
    with pytest.raises(jwt.InvalidTokenError):
        token_service.decode_access_token(forged)


@pytest.mark.parametrize(
    "header,expected",
    [
        (None, None),
        ("", None),
        ("Basic abc", None),
        ("Bearer not-a-token", None),
    ],
    ids=["missing", "empty", "basic", "garbage"],
)
def test_subject_from_header_rejects(header, expected) -> None:
    assert token_service.subject_from_header(header) is expected


def test_subject_from_header_accepts_valid_token() -> None:
    token = token_service.create_access_token(sub="abc", role="learner")
    assert token_service.subject_from_header(f"Bearer {token}") == "abc"
