"""PostgreSQL implementation of CourseRepo.

Lesson positions are reserved with a single

    UPDATE courses SET next_lesson_index = next_lesson_index + 1
    WHERE id = :id RETURNING next_lesson_index

which row-locks the course until the lesson insert commits, so two
concurrent appends receive distinct indices.  uq_lessons_course_order
backs this up at the schema level.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from microcourses.db.tables import CourseRow, LessonRow
from microcourses.models.course import Course, Lesson, LessonDraft
from microcourses.repos.pg_errors import raise_if_duplicate


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filtered(
    stmt: Select,
    *,
    status: str | None,
    creator_id: UUID | None,
    search: str | None,
) -> Select:
    if status is not None:
        stmt = stmt.where(CourseRow.status == status)
    if creator_id is not None:
        stmt = stmt.where(CourseRow.creator_id == creator_id)
    if search:
        pattern = f"%{_escape_like(search)}%"
        stmt = stmt.where(
            or_(
                CourseRow.title.ilike(pattern, escape="\\"),
                CourseRow.description.ilike(pattern, escape="\\"),
            )
        )
    return stmt


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get(self, course_id: UUID) -> Course | None:
        async with self._sessions() as session:
            row = await session.get(CourseRow, course_id)
            if row is None:
                return None
            lessons = await _load_lessons(session, [course_id])
            return _row_to_course(row, lessons.get(course_id, ()))

    async def add(self, course: Course) -> None:
        row = CourseRow(
            id=course.id,
            title=course.title,
            description=course.description,
            creator_id=course.creator_id,
            status=course.status,
            next_lesson_index=course.next_lesson_index,
            created_at=course.created_at,
        )
        async with self._sessions() as session, session.begin():
            session.add(row)
            for lesson in course.lessons:
                session.add(_lesson_to_row(course.id, lesson))

    async def save(self, course: Course) -> Course:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course.id)
            .values(
                title=course.title,
                description=course.description,
                status=course.status,
            )
        )
        async with self._sessions() as session, session.begin():
            result = await session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("course not found")
        saved = await self.get(course.id)
        if saved is None:
            raise KeyError("course not found")
        return saved

    async def append_lesson(
        self, course_id: UUID, draft: LessonDraft
    ) -> tuple[Course, Lesson] | None:
        reserve = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(next_lesson_index=CourseRow.next_lesson_index + 1)
            .returning(CourseRow.next_lesson_index)
        )
        try:
            async with self._sessions() as session, session.begin():
                next_index = (await session.execute(reserve)).scalar_one_or_none()
                if next_index is None:
                    return None
                lesson = Lesson.from_draft(draft, order_index=next_index - 1)
                session.add(_lesson_to_row(course_id, lesson))
        except IntegrityError as exc:
            raise_if_duplicate(exc)
            raise
        course = await self.get(course_id)
        if course is None:
            return None
        return course, lesson

    async def find(
        self,
        *,
        status: str | None = None,
        creator_id: UUID | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> list[Course]:
        stmt = _filtered(
            select(CourseRow), status=status, creator_id=creator_id, search=search
        )
        stmt = stmt.order_by(CourseRow.created_at.desc()).offset(offset).limit(limit)
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            lessons = await _load_lessons(session, [r.id for r in rows])
            return [_row_to_course(r, lessons.get(r.id, ())) for r in rows]

    async def count(
        self,
        *,
        status: str | None = None,
        creator_id: UUID | None = None,
        search: str | None = None,
    ) -> int:
        stmt = _filtered(
            select(func.count()).select_from(CourseRow),
            status=status,
            creator_id=creator_id,
            search=search,
        )
        async with self._sessions() as session:
            return int((await session.execute(stmt)).scalar_one())


async def _load_lessons(
    session: AsyncSession, course_ids: list[UUID]
) -> dict[UUID, tuple[Lesson, ...]]:
    if not course_ids:
        return {}
    stmt = (
        select(LessonRow)
        .where(LessonRow.course_id.in_(course_ids))
        .order_by(LessonRow.course_id, LessonRow.order_index)
    )
    grouped: dict[UUID, list[Lesson]] = {}
    for row in (await session.execute(stmt)).scalars():
        grouped.setdefault(row.course_id, []).append(_row_to_lesson(row))
    return {cid: tuple(ls) for cid, ls in grouped.items()}


def _row_to_course(row: CourseRow, lessons: tuple[Lesson, ...]) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        description=row.description,
        creator_id=row.creator_id,
        status=row.status,
        lessons=lessons,
        next_lesson_index=row.next_lesson_index,
        created_at=row.created_at,
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        title=row.title,
        content=row.content,
        order_index=row.order_index,
        video_url=row.video_url,
        duration=row.duration,
        transcript=row.transcript,
    )


def _lesson_to_row(course_id: UUID, lesson: Lesson) -> LessonRow:
    return LessonRow(
        id=lesson.id,
        course_id=course_id,
        order_index=lesson.order_index,
        title=lesson.title,
        content=lesson.content,
        video_url=lesson.video_url,
        duration=lesson.duration,
        transcript=lesson.transcript,
    )
