from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from microcourses.core.errors import DuplicateKeyError
from microcourses.models.enrollment import Enrollment


class EnrollmentRepo(Protocol):
    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def save(self, enrollment: Enrollment) -> None: ...
    async def find_by_user(
        self, user_id: UUID, *, offset: int = 0, limit: int = 10
    ) -> list[Enrollment]: ...
    async def count_by_user(self, user_id: UUID) -> int: ...


class InMemoryEnrollmentRepo:
    """Keyed by (user_id, course_id), the enrollment uniqueness constraint."""

    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Enrollment] = {}

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        return self._store.get((user_id, course_id))

    async def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self._store:
            raise DuplicateKeyError("enrollment")
        self._store[key] = enrollment

    async def save(self, enrollment: Enrollment) -> None:
        key = (enrollment.user_id, enrollment.course_id)
        current = self._store.get(key)
        if current is None:
            raise KeyError("enrollment not found")
        if current.completed and not enrollment.completed:
            enrollment = replace(enrollment, completed=True)
        self._store[key] = enrollment

    async def find_by_user(
        self, user_id: UUID, *, offset: int = 0, limit: int = 10
    ) -> list[Enrollment]:
        mine = [e for e in reversed(list(self._store.values())) if e.user_id == user_id]
        mine.sort(key=lambda e: e.enrolled_at, reverse=True)
        return mine[offset : offset + limit]

    async def count_by_user(self, user_id: UUID) -> int:
        return sum(1 for e in self._store.values() if e.user_id == user_id)
