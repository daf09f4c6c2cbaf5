from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from microcourses.api.dependencies import Author
from microcourses.api.ratelimit import require_rate_limit
from microcourses.api.schemas import CourseOut, PageEnvelope, PageParams, page_params
from microcourses.repos import registry
from microcourses.services import course_service

router = APIRouter(
    prefix="/api/creator",
    tags=["creator"],
    dependencies=[Depends(require_rate_limit())],
)


@router.get("/courses", response_model=PageEnvelope[CourseOut])
async def my_courses(
    principal: Author,
    paging: Annotated[PageParams, Depends(page_params)],
) -> PageEnvelope[CourseOut]:
    """The caller's own courses in every status; approval not required."""
    items, total = await course_service.list_by_creator(
        principal,
        offset=paging.offset,
        limit=paging.limit,
        courses=registry.course_repo,
    )
    return PageEnvelope[CourseOut](
        data=[CourseOut.of(c) for c in items],
        pagination=paging.pagination(total),
    )
