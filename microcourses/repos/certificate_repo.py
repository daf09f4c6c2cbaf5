from __future__ import annotations

from typing import Protocol
from uuid import UUID

from microcourses.core.errors import DuplicateKeyError
from microcourses.models.certificate import Certificate


class CertificateRepo(Protocol):
    async def get(self, user_id: UUID, course_id: UUID) -> Certificate | None: ...
    async def get_by_hash(self, certificate_hash: str) -> Certificate | None: ...
    async def add(self, certificate: Certificate) -> None: ...
    async def find_by_user(
        self, user_id: UUID, *, offset: int = 0, limit: int = 10
    ) -> list[Certificate]: ...
    async def count_by_user(self, user_id: UUID) -> int: ...


class InMemoryCertificateRepo:
    """Certificates are immutable: there is no save/update."""

    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Certificate] = {}
        self._by_hash: dict[str, Certificate] = {}

    async def get(self, user_id: UUID, course_id: UUID) -> Certificate | None:
        return self._store.get((user_id, course_id))

    async def get_by_hash(self, certificate_hash: str) -> Certificate | None:
        return self._by_hash.get(certificate_hash)

    async def add(self, certificate: Certificate) -> None:
        key = (certificate.user_id, certificate.course_id)
        if key in self._store:
            raise DuplicateKeyError("certificate")
        if certificate.certificate_hash in self._by_hash:
            raise DuplicateKeyError("certificateHash")
        self._store[key] = certificate
        self._by_hash[certificate.certificate_hash] = certificate

    async def find_by_user(
        self, user_id: UUID, *, offset: int = 0, limit: int = 10
    ) -> list[Certificate]:
        mine = [c for c in reversed(list(self._store.values())) if c.user_id == user_id]
        mine.sort(key=lambda c: c.issued_at, reverse=True)
        return mine[offset : offset + limit]

    async def count_by_user(self, user_id: UUID) -> int:
        return sum(1 for c in self._store.values() if c.user_id == user_id)
