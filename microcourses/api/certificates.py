from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from microcourses.api.dependencies import CurrentUser, Learner
from microcourses.api.ratelimit import require_rate_limit
from microcourses.api.schemas import (
    CertificateOut,
    Envelope,
    PageEnvelope,
    PageParams,
    page_params,
)
from microcourses.repos import registry
from microcourses.services import certificate_service

router = APIRouter(
    prefix="/api",
    tags=["certificates"],
    dependencies=[Depends(require_rate_limit())],
)


@router.post(
    "/certificate/{course_id}",
    response_model=Envelope[CertificateOut],
    status_code=status.HTTP_201_CREATED,
)
async def issue_certificate(
    course_id: UUID, principal: Learner, user: CurrentUser
) -> Envelope[CertificateOut]:
    certificate, course = await certificate_service.issue_certificate(
        principal.user_id,
        course_id,
        courses=registry.course_repo,
        enrollments=registry.enrollment_repo,
        certificates=registry.certificate_repo,
    )
    return Envelope[CertificateOut](
        data=CertificateOut.of(certificate, user=user, course=course)
    )


@router.get("/certificates", response_model=PageEnvelope[CertificateOut])
async def my_certificates(
    principal: Learner,
    user: CurrentUser,
    paging: Annotated[PageParams, Depends(page_params)],
) -> PageEnvelope[CertificateOut]:
    pairs, total = await certificate_service.list_certificates(
        principal.user_id,
        offset=paging.offset,
        limit=paging.limit,
        courses=registry.course_repo,
        certificates=registry.certificate_repo,
    )
    return PageEnvelope[CertificateOut](
        data=[CertificateOut.of(cert, user=user, course=course) for cert, course in pairs],
        pagination=paging.pagination(total),
    )
