from __future__ import annotations

import logging
import re
from dataclasses import replace
from uuid import UUID

from microcourses.core.errors import (
    Conflict,
    DuplicateKeyError,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from microcourses.models.user import User
from microcourses.repos.user_repo import UserRepo
from microcourses.services import auth_service

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def register(
    *, email: str, password: str, role: str | None = None, users: UserRepo
) -> User:
    """Create a learner or creator account.

    Anything other than an explicit "creator" request registers a learner;
    admin accounts are never self-service.  Creators start unapproved.
    """
    email = normalize_email(email)
    if not _EMAIL_RE.match(email):
        raise ValidationFailed("Please provide a valid email", field="email")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            code="INVALID_PASSWORD",
            field="password",
        )

    if await users.get_by_email(email) is not None:
        logger.warning("Rejected duplicate registration")
        raise Conflict("email already exists", field="email")

    user = User.new(
        email=email,
        password_hash=await auth_service.hash_password_async(password),
        role="creator" if role == "creator" else "learner",
    )
    try:
        await users.add(user)
    except DuplicateKeyError as exc:
        raise Conflict(f"{exc.field} already exists", field=exc.field) from None

    logger.info("User registered user_id=%s role=%s", user.id, user.role)
    return user


async def login(*, email: str, password: str, users: UserRepo) -> User:
    user = await auth_service.authenticate_user(users, normalize_email(email), password)
    if user is None:
        logger.warning("Login failed")
        raise Unauthorized("Invalid credentials", code="INVALID_CREDENTIALS")
    logger.info("Login succeeded user_id=%s", user.id)
    return user


async def approve_creator(user_id: UUID, *, users: UserRepo) -> User:
    user = await users.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    if user.role != "creator":
        raise ValidationFailed("User is not a creator", code="INVALID_ROLE")
    if user.approved_creator:
        return user

    approved = replace(user, approved_creator=True)
    await users.save(approved)
    logger.info("Creator approved user_id=%s", user_id, extra={"user_id": str(user_id)})
    return approved


async def list_creator_applications(
    *, offset: int, limit: int, users: UserRepo
) -> tuple[list[User], int]:
    items = await users.find_pending_creators(offset=offset, limit=limit)
    total = await users.count_pending_creators()
    return items, total
