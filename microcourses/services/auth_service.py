from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from microcourses.models.user import User
from microcourses.repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

# Argon2 hash strings encode parameters + salt
_ph = PasswordHasher()


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _ph.hash(plain_password)


# verify_password() must catch Argon2 exceptions and return False
def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


async def hash_password_async(plain_password: str) -> str:
    """hash_password off the event loop; argon2 is deliberately slow."""
    return await asyncio.to_thread(hash_password, plain_password)


async def authenticate_user(repo: UserRepo, email: str, password: str) -> User | None:
    user = await repo.get_by_email(email)
    if user is None:
        return None
    ok = await asyncio.to_thread(verify_password, password, user.password_hash)
    if not ok:
        return None

    # Upgrade the stored hash when the hasher parameters have changed.
    if _ph.check_needs_rehash(user.password_hash):
        user = replace(user, password_hash=await hash_password_async(password))
        await repo.save(user)
        logger.info("Rehashed password for user=%s", user.id)

    return user
