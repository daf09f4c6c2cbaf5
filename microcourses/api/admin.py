"""Admin moderation: course review and creator approval."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from microcourses.api.dependencies import Admin
from microcourses.api.ratelimit import require_rate_limit
from microcourses.api.schemas import (
    CourseOut,
    CreatorApplicationOut,
    Envelope,
    PageEnvelope,
    PageParams,
    StatusIn,
    UserOut,
    page_params,
)
from microcourses.repos import registry
from microcourses.services import course_service, users_service

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_rate_limit())],
)


@router.get("/courses", response_model=PageEnvelope[CourseOut])
async def review_queue(
    _admin: Admin,
    paging: Annotated[PageParams, Depends(page_params)],
    status: Annotated[str, Query()] = "pending",
) -> PageEnvelope[CourseOut]:
    items, total = await course_service.list_for_review(
        status,
        offset=paging.offset,
        limit=paging.limit,
        courses=registry.course_repo,
    )
    return PageEnvelope[CourseOut](
        data=[CourseOut.of(c) for c in items],
        pagination=paging.pagination(total),
    )


@router.put("/courses/{course_id}/status", response_model=Envelope[CourseOut])
async def set_course_status(
    course_id: UUID, payload: StatusIn, admin: Admin
) -> Envelope[CourseOut]:
    course = await course_service.review_course(
        admin, course_id, payload.status, courses=registry.course_repo
    )
    return Envelope[CourseOut](data=CourseOut.of(course))


@router.get(
    "/creator-applications", response_model=PageEnvelope[CreatorApplicationOut]
)
async def creator_applications(
    _admin: Admin,
    paging: Annotated[PageParams, Depends(page_params)],
) -> PageEnvelope[CreatorApplicationOut]:
    items, total = await users_service.list_creator_applications(
        offset=paging.offset, limit=paging.limit, users=registry.user_repo
    )
    return PageEnvelope[CreatorApplicationOut](
        data=[CreatorApplicationOut.of(u) for u in items],
        pagination=paging.pagination(total),
    )


@router.put("/creator-applications/{user_id}", response_model=Envelope[UserOut])
async def approve_creator(user_id: UUID, _admin: Admin) -> Envelope[UserOut]:
    user = await users_service.approve_creator(user_id, users=registry.user_repo)
    return Envelope[UserOut](data=UserOut.of(user))
