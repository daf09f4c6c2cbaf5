"""Course catalogue and authoring endpoints (/api/courses)."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from microcourses.api.dependencies import ApprovedAuthor
from microcourses.api.ratelimit import require_rate_limit
from microcourses.api.schemas import (
    CourseIn,
    CourseOut,
    CourseUpdateIn,
    Envelope,
    LessonIn,
    PageEnvelope,
    PageParams,
    page_params,
)
from microcourses.models.course import LessonDraft
from microcourses.repos import registry
from microcourses.services import course_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/courses",
    tags=["courses"],
    dependencies=[Depends(require_rate_limit())],
)


@router.get("", response_model=PageEnvelope[CourseOut])
async def list_courses(
    paging: Annotated[PageParams, Depends(page_params)],
    search: Annotated[str | None, Query(max_length=200)] = None,
) -> PageEnvelope[CourseOut]:
    """Published courses, newest first; `search` matches title or description."""
    items, total = await course_service.list_published(
        search=search.strip() if search else None,
        offset=paging.offset,
        limit=paging.limit,
        courses=registry.course_repo,
    )
    return PageEnvelope[CourseOut](
        data=[CourseOut.of(c) for c in items],
        pagination=paging.pagination(total),
    )


@router.post(
    "",
    response_model=Envelope[CourseOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_course(
    payload: CourseIn, principal: ApprovedAuthor
) -> Envelope[CourseOut]:
    course = await course_service.create_course(
        principal,
        title=payload.title,
        description=payload.description,
        courses=registry.course_repo,
    )
    return Envelope[CourseOut](data=CourseOut.of(course))


@router.get("/{course_id}", response_model=Envelope[CourseOut])
async def get_course(course_id: UUID) -> Envelope[CourseOut]:
    course = await course_service.get_course(course_id, courses=registry.course_repo)
    return Envelope[CourseOut](data=CourseOut.of(course))


@router.put("/{course_id}", response_model=Envelope[CourseOut])
async def update_course(
    course_id: UUID, payload: CourseUpdateIn, principal: ApprovedAuthor
) -> Envelope[CourseOut]:
    course = await course_service.update_course(
        principal,
        course_id,
        title=payload.title,
        description=payload.description,
        status=payload.status,
        courses=registry.course_repo,
    )
    return Envelope[CourseOut](data=CourseOut.of(course))


@router.post(
    "/{course_id}/lessons",
    response_model=Envelope[CourseOut],
    status_code=status.HTTP_201_CREATED,
)
async def add_lesson(
    course_id: UUID, payload: LessonIn, principal: ApprovedAuthor
) -> Envelope[CourseOut]:
    draft = LessonDraft(
        title=payload.title,
        content=payload.content,
        video_url=payload.videoUrl,
        duration=payload.duration,
        transcript=payload.transcript,
    )
    course = await course_service.add_lesson(
        principal, course_id, draft, courses=registry.course_repo
    )
    return Envelope[CourseOut](data=CourseOut.of(course))
