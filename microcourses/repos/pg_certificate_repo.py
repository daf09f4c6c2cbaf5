"""PostgreSQL implementation of CertificateRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from microcourses.db.tables import CertificateRow
from microcourses.models.certificate import Certificate
from microcourses.repos.pg_errors import raise_if_duplicate


class PgCertificateRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get(self, user_id: UUID, course_id: UUID) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.user_id == user_id,
            CertificateRow.course_id == course_id,
        )
        return await self._one(stmt)

    async def get_by_hash(self, certificate_hash: str) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.certificate_hash == certificate_hash
        )
        return await self._one(stmt)

    async def add(self, certificate: Certificate) -> None:
        row = CertificateRow(
            id=certificate.id,
            user_id=certificate.user_id,
            course_id=certificate.course_id,
            certificate_hash=certificate.certificate_hash,
            issued_at=certificate.issued_at,
        )
        try:
            async with self._sessions() as session, session.begin():
                session.add(row)
        except IntegrityError as exc:
            raise_if_duplicate(exc)
            raise

    async def find_by_user(
        self, user_id: UUID, *, offset: int = 0, limit: int = 10
    ) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.user_id == user_id)
            .order_by(CertificateRow.issued_at.desc())
            .offset(offset)
            .limit(limit)
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_certificate(r) for r in rows]

    async def count_by_user(self, user_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(CertificateRow)
            .where(CertificateRow.user_id == user_id)
        )
        async with self._sessions() as session:
            return int((await session.execute(stmt)).scalar_one())

    async def _one(self, stmt) -> Certificate | None:
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_certificate(row) if row is not None else None


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        certificate_hash=row.certificate_hash,
        issued_at=row.issued_at,
    )
