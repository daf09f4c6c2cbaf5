"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from microcourses.db.tables import EnrollmentRow
from microcourses.models.enrollment import Enrollment
from microcourses.repos.pg_errors import raise_if_duplicate


class PgEnrollmentRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.user_id == user_id,
            EnrollmentRow.course_id == course_id,
        )
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_enrollment(row) if row is not None else None

    async def add(self, enrollment: Enrollment) -> None:
        row = EnrollmentRow(
            id=enrollment.id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            completed_lessons=list(enrollment.completed_lessons),
            progress=enrollment.progress,
            completed=enrollment.completed,
            enrolled_at=enrollment.enrolled_at,
        )
        try:
            async with self._sessions() as session, session.begin():
                session.add(row)
        except IntegrityError as exc:
            raise_if_duplicate(exc)
            raise

    async def save(self, enrollment: Enrollment) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.user_id == enrollment.user_id,
                EnrollmentRow.course_id == enrollment.course_id,
            )
            .values(
                completed_lessons=list(enrollment.completed_lessons),
                progress=enrollment.progress,
                # A stale writer must not clear a latch set by a concurrent one.
                completed=or_(EnrollmentRow.completed, enrollment.completed),
            )
        )
        async with self._sessions() as session, session.begin():
            result = await session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("enrollment not found")

    async def find_by_user(
        self, user_id: UUID, *, offset: int = 0, limit: int = 10
    ) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id)
            .order_by(EnrollmentRow.enrolled_at.desc())
            .offset(offset)
            .limit(limit)
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_enrollment(r) for r in rows]

    async def count_by_user(self, user_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id)
        )
        async with self._sessions() as session:
            return int((await session.execute(stmt)).scalar_one())


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        completed_lessons=tuple(row.completed_lessons or ()),
        progress=row.progress,
        completed=row.completed,
        enrolled_at=row.enrolled_at,
    )
