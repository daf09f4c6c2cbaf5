"""Learner flow: enroll in a course and report lesson progress."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from microcourses.api.dependencies import Learner
from microcourses.api.ratelimit import require_rate_limit
from microcourses.api.schemas import (
    EnrollmentOut,
    Envelope,
    PageEnvelope,
    PageParams,
    ProgressIn,
    ProgressItemOut,
    page_params,
)
from microcourses.core.errors import NotFound
from microcourses.repos import registry
from microcourses.services import enrollment_service

router = APIRouter(
    prefix="/api",
    tags=["enrollment"],
    dependencies=[Depends(require_rate_limit())],
)


@router.post(
    "/enroll/{course_id}",
    response_model=Envelope[EnrollmentOut],
    status_code=status.HTTP_201_CREATED,
)
async def enroll(course_id: UUID, principal: Learner) -> Envelope[EnrollmentOut]:
    enrollment = await enrollment_service.enroll(
        principal.user_id,
        course_id,
        courses=registry.course_repo,
        enrollments=registry.enrollment_repo,
    )
    return Envelope[EnrollmentOut](data=EnrollmentOut.of(enrollment))


@router.put("/progress/{lesson_id}", response_model=Envelope[EnrollmentOut])
async def update_progress(
    lesson_id: UUID, payload: ProgressIn, principal: Learner
) -> Envelope[EnrollmentOut]:
    try:
        course_id = UUID(payload.courseId)
    except ValueError:
        # Not a course id, so there is no enrollment for it either.
        raise NotFound("Enrollment not found") from None

    enrollment = await enrollment_service.complete_lesson(
        principal.user_id,
        course_id,
        lesson_id,
        courses=registry.course_repo,
        enrollments=registry.enrollment_repo,
    )
    return Envelope[EnrollmentOut](data=EnrollmentOut.of(enrollment))


@router.get("/progress", response_model=PageEnvelope[ProgressItemOut])
async def my_progress(
    principal: Learner,
    paging: Annotated[PageParams, Depends(page_params)],
) -> PageEnvelope[ProgressItemOut]:
    pairs, total = await enrollment_service.list_progress(
        principal.user_id,
        offset=paging.offset,
        limit=paging.limit,
        courses=registry.course_repo,
        enrollments=registry.enrollment_repo,
    )
    return PageEnvelope[ProgressItemOut](
        data=[ProgressItemOut.of_pair(e, c) for e, c in pairs],
        pagination=paging.pagination(total),
    )
