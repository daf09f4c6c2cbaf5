"""Course authoring and the publication workflow.

    draft ──► pending ──► published
      ▲  ◄──    │
      │         ▼
      └──── rejected ──► pending

Authors (owner or admin) move courses between draft and pending, and
back out of rejected.  Only the admin review publishes or rejects a
pending course.  Re-applying the current status is a no-op.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from uuid import UUID

from microcourses.core.errors import NotFound, PreconditionFailed, ValidationFailed
from microcourses.core.metrics import COURSE_STATUS_CHANGES
from microcourses.models.course import (
    AUTHOR_STATUSES,
    COURSE_STATUSES,
    REVIEW_STATUSES,
    Course,
    LessonDraft,
    can_transition,
)
from microcourses.models.principal import Principal
from microcourses.repos.course_repo import CourseRepo
from microcourses.services.authorization import AUTHORS, authorize

logger = logging.getLogger(__name__)


async def create_course(
    principal: Principal, *, title: str, description: str, courses: CourseRepo
) -> Course:
    course = Course.new(title=title, description=description, creator_id=principal.user_id)
    await courses.add(course)
    logger.info(
        "Course created course_id=%s creator=%s",
        course.id,
        principal.user_id,
        extra={"course_id": str(course.id), "user_id": str(principal.user_id)},
    )
    return course


async def get_course(course_id: UUID, *, courses: CourseRepo) -> Course:
    course = await courses.get(course_id)
    if course is None:
        raise NotFound("Course not found")
    return course


async def list_published(
    *, search: str | None, offset: int, limit: int, courses: CourseRepo
) -> tuple[list[Course], int]:
    items = await courses.find(status="published", search=search, offset=offset, limit=limit)
    total = await courses.count(status="published", search=search)
    return items, total


async def list_by_creator(
    principal: Principal, *, offset: int, limit: int, courses: CourseRepo
) -> tuple[list[Course], int]:
    items = await courses.find(creator_id=principal.user_id, offset=offset, limit=limit)
    total = await courses.count(creator_id=principal.user_id)
    return items, total


async def list_for_review(
    status: str, *, offset: int, limit: int, courses: CourseRepo
) -> tuple[list[Course], int]:
    """Admin listing; `status` is a course status or "all"."""
    if status != "all" and status not in COURSE_STATUSES:
        raise ValidationFailed(
            f"Status must be one of: {', '.join(COURSE_STATUSES)}, all",
            code="INVALID_STATUS",
            field="status",
        )
    wanted = None if status == "all" else status
    items = await courses.find(status=wanted, offset=offset, limit=limit)
    total = await courses.count(status=wanted)
    return items, total


async def update_course(
    principal: Principal,
    course_id: UUID,
    *,
    title: str | None = None,
    description: str | None = None,
    status: str | None = None,
    courses: CourseRepo,
) -> Course:
    if status is not None and status not in AUTHOR_STATUSES:
        raise ValidationFailed(
            f"Status must be one of: {', '.join(AUTHOR_STATUSES)}",
            code="INVALID_STATUS",
            field="status",
        )

    course = await get_course(course_id, courses=courses)
    authorize(
        principal,
        AUTHORS,
        owner_id=course.creator_id,
        denied_message="Not authorized to update this course",
    )

    if status is not None:
        _check_transition(course, status, review=False)

    updated = replace(
        course,
        title=title if title is not None else course.title,
        description=description if description is not None else course.description,
        status=status if status is not None else course.status,
    )
    saved = await courses.save(updated)
    _note_status_change(course, saved, principal)
    return saved


async def add_lesson(
    principal: Principal, course_id: UUID, draft: LessonDraft, *, courses: CourseRepo
) -> Course:
    course = await get_course(course_id, courses=courses)
    authorize(
        principal,
        AUTHORS,
        owner_id=course.creator_id,
        denied_message="Not authorized to update this course",
    )

    appended = await courses.append_lesson(course_id, draft)
    if appended is None:
        raise NotFound("Course not found")
    updated, lesson = appended
    logger.info(
        "Lesson appended course_id=%s lesson_id=%s order_index=%d",
        course_id,
        lesson.id,
        lesson.order_index,
        extra={"course_id": str(course_id), "user_id": str(principal.user_id)},
    )
    return updated


async def review_course(
    principal: Principal, course_id: UUID, status: str, *, courses: CourseRepo
) -> Course:
    """Admin review: publish or reject a pending course."""
    if status not in REVIEW_STATUSES:
        raise ValidationFailed(
            f"Status must be one of: {', '.join(REVIEW_STATUSES)}",
            code="INVALID_STATUS",
            field="status",
        )

    course = await get_course(course_id, courses=courses)
    _check_transition(course, status, review=True)

    saved = await courses.save(replace(course, status=status))
    _note_status_change(course, saved, principal)
    return saved


def _check_transition(course: Course, target: str, *, review: bool) -> None:
    if not can_transition(course.status, target, review=review):
        logger.warning(
            "Rejected transition course_id=%s %s -> %s",
            course.id,
            course.status,
            target,
            extra={"course_id": str(course.id), "error_code": "INVALID_TRANSITION"},
        )
        raise PreconditionFailed(
            f"Cannot change course status from {course.status} to {target}",
            code="INVALID_TRANSITION",
            field="status",
        )


def _note_status_change(before: Course, after: Course, principal: Principal) -> None:
    if before.status == after.status:
        return
    COURSE_STATUS_CHANGES.labels(to_status=after.status).inc()
    logger.info(
        "Course status changed course_id=%s %s -> %s by=%s",
        after.id,
        before.status,
        after.status,
        principal.user_id,
        extra={"course_id": str(after.id), "user_id": str(principal.user_id)},
    )
