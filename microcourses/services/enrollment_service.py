"""Enrollment workflow: enroll, mark lessons complete, list progress."""

from __future__ import annotations

import logging
from uuid import UUID

from microcourses.core.errors import (
    Conflict,
    DuplicateKeyError,
    NotFound,
    PreconditionFailed,
)
from microcourses.core.metrics import (
    COURSES_COMPLETED,
    ENROLLMENTS_CREATED,
    LESSONS_COMPLETED,
)
from microcourses.models.course import Course
from microcourses.models.enrollment import Enrollment
from microcourses.repos.course_repo import CourseRepo
from microcourses.repos.enrollment_repo import EnrollmentRepo

logger = logging.getLogger(__name__)


def _already_enrolled() -> Conflict:
    return Conflict("Already enrolled in this course", code="ALREADY_ENROLLED")


async def enroll(
    user_id: UUID,
    course_id: UUID,
    *,
    courses: CourseRepo,
    enrollments: EnrollmentRepo,
) -> Enrollment:
    course = await courses.get(course_id)
    if course is None:
        raise NotFound("Course not found")
    if not course.is_published:
        raise PreconditionFailed(
            "Course is not published", code="COURSE_NOT_PUBLISHED"
        )
    if await enrollments.get(user_id, course_id) is not None:
        raise _already_enrolled()

    enrollment = Enrollment.new(user_id=user_id, course_id=course_id)
    try:
        await enrollments.add(enrollment)
    except DuplicateKeyError:
        # Lost the race to a concurrent enroll for the same pair.
        raise _already_enrolled() from None

    ENROLLMENTS_CREATED.inc()
    logger.info(
        "Enrolled user=%s course=%s",
        user_id,
        course_id,
        extra={"user_id": str(user_id), "course_id": str(course_id)},
    )
    return enrollment


async def complete_lesson(
    user_id: UUID,
    course_id: UUID,
    lesson_id: UUID,
    *,
    courses: CourseRepo,
    enrollments: EnrollmentRepo,
) -> Enrollment:
    """Add a lesson to the completion set and recompute progress.

    Repeating the call for the same lesson is harmless: the set is
    unchanged and progress is recomputed against the current lesson count.
    """
    enrollment = await enrollments.get(user_id, course_id)
    if enrollment is None:
        raise NotFound("Enrollment not found")
    course = await courses.get(course_id)
    if course is None:
        raise NotFound("Course not found")
    if course.lesson(lesson_id) is None:
        raise NotFound("Lesson not found")

    repeat = enrollment.has_completed(lesson_id)
    updated = enrollment.with_lesson_completed(lesson_id, course.total_lessons)
    await enrollments.save(updated)

    LESSONS_COMPLETED.labels(result="repeat" if repeat else "new").inc()
    if updated.completed and not enrollment.completed:
        COURSES_COMPLETED.inc()
        logger.info(
            "Course completed user=%s course=%s",
            user_id,
            course_id,
            extra={"user_id": str(user_id), "course_id": str(course_id)},
        )
    return updated


async def list_progress(
    user_id: UUID,
    *,
    offset: int,
    limit: int,
    courses: CourseRepo,
    enrollments: EnrollmentRepo,
) -> tuple[list[tuple[Enrollment, Course | None]], int]:
    items = await enrollments.find_by_user(user_id, offset=offset, limit=limit)
    total = await enrollments.count_by_user(user_id)
    return [(e, await courses.get(e.course_id)) for e in items], total
