"""Course aggregate persistence.

`save` writes the scalar fields of a course (title, description, status);
lessons are only ever added through `append_lesson`, which reserves the
next order index, appends in one step and returns the lesson it created.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from microcourses.models.course import Course, Lesson, LessonDraft


class CourseRepo(Protocol):
    async def get(self, course_id: UUID) -> Course | None: ...
    async def add(self, course: Course) -> None: ...
    async def save(self, course: Course) -> Course: ...
    async def append_lesson(
        self, course_id: UUID, draft: LessonDraft
    ) -> tuple[Course, Lesson] | None: ...
    async def find(
        self,
        *,
        status: str | None = None,
        creator_id: UUID | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> list[Course]: ...
    async def count(
        self,
        *,
        status: str | None = None,
        creator_id: UUID | None = None,
        search: str | None = None,
    ) -> int: ...


def matches(
    course: Course,
    *,
    status: str | None,
    creator_id: UUID | None,
    search: str | None,
) -> bool:
    if status is not None and course.status != status:
        return False
    if creator_id is not None and course.creator_id != creator_id:
        return False
    if search:
        needle = search.casefold()
        if needle not in course.title.casefold() and needle not in course.description.casefold():
            return False
    return True


class InMemoryCourseRepo:
    """Dict-backed repo.

    Each method runs to completion without awaiting, so on the single event
    loop a read-modify-write such as `append_lesson` cannot interleave with
    another request.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}

    async def get(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def add(self, course: Course) -> None:
        if course.id in self._by_id:
            raise ValueError("course already exists")
        self._by_id[course.id] = course

    async def save(self, course: Course) -> Course:
        current = self._by_id.get(course.id)
        if current is None:
            raise KeyError("course not found")
        updated = replace(
            current,
            title=course.title,
            description=course.description,
            status=course.status,
        )
        self._by_id[course.id] = updated
        return updated

    async def append_lesson(
        self, course_id: UUID, draft: LessonDraft
    ) -> tuple[Course, Lesson] | None:
        current = self._by_id.get(course_id)
        if current is None:
            return None
        updated = current.with_lesson(draft)
        self._by_id[course_id] = updated
        return updated, updated.lessons[-1]

    async def find(
        self,
        *,
        status: str | None = None,
        creator_id: UUID | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> list[Course]:
        hits = [
            c
            for c in self._newest_first()
            if matches(c, status=status, creator_id=creator_id, search=search)
        ]
        return hits[offset : offset + limit]

    async def count(
        self,
        *,
        status: str | None = None,
        creator_id: UUID | None = None,
        search: str | None = None,
    ) -> int:
        return sum(
            1
            for c in self._by_id.values()
            if matches(c, status=status, creator_id=creator_id, search=search)
        )

    def _newest_first(self) -> list[Course]:
        return sorted(
            reversed(list(self._by_id.values())),
            key=lambda c: c.created_at,
            reverse=True,
        )
