from __future__ import annotations

from typing import Protocol
from uuid import UUID

from microcourses.core.errors import DuplicateKeyError
from microcourses.models.user import User


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def add(self, user: User) -> None: ...
    async def save(self, user: User) -> None: ...
    async def find_pending_creators(self, *, offset: int, limit: int) -> list[User]: ...
    async def count_pending_creators(self) -> int: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_email: dict[str, User] = {}
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        # Callers normalise (strip + lowercase) before lookup.
        return self._by_email.get(email)

    async def add(self, user: User) -> None:
        if user.email in self._by_email:
            raise DuplicateKeyError("email")
        self._by_email[user.email] = user
        self._by_id[user.id] = user

    async def save(self, user: User) -> None:
        current = self._by_id.get(user.id)
        if current is None:
            raise KeyError("user not found")
        if current.email != user.email:
            self._by_email.pop(current.email, None)
        self._by_id[user.id] = user
        self._by_email[user.email] = user

    async def find_pending_creators(self, *, offset: int, limit: int) -> list[User]:
        pending = [u for u in self._newest_first() if u.is_pending_creator]
        return pending[offset : offset + limit]

    async def count_pending_creators(self) -> int:
        return sum(1 for u in self._by_id.values() if u.is_pending_creator)

    def _newest_first(self) -> list[User]:
        # Reversed insertion order first so ties on created_at stay newest-first.
        return sorted(
            reversed(list(self._by_id.values())),
            key=lambda u: u.created_at,
            reverse=True,
        )
