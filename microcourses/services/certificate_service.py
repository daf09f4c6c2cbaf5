"""Certificate issuance: at most one certificate per (learner, course).

The pre-checks give precise errors; the repository's uniqueness
constraints are what make issuance exactly-once when two requests race
past the checks together.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from uuid import UUID

from microcourses.core.errors import (
    Conflict,
    DuplicateKeyError,
    NotFound,
    PreconditionFailed,
)
from microcourses.core.metrics import CERTIFICATES_ISSUED
from microcourses.models.certificate import Certificate
from microcourses.models.course import Course
from microcourses.repos.certificate_repo import CertificateRepo
from microcourses.repos.course_repo import CourseRepo
from microcourses.repos.enrollment_repo import EnrollmentRepo

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


async def issue_certificate(
    user_id: UUID,
    course_id: UUID,
    *,
    courses: CourseRepo,
    enrollments: EnrollmentRepo,
    certificates: CertificateRepo,
    clock_ms: Callable[[], int] = _now_ms,
) -> tuple[Certificate, Course]:
    enrollment = await enrollments.get(user_id, course_id)
    if enrollment is None:
        raise NotFound("Enrollment not found")
    # The completion latch survives lessons added later; progress does not.
    if not enrollment.completed or enrollment.progress < 100:
        raise PreconditionFailed(
            "Course must be completed to generate certificate",
            code="INCOMPLETE_COURSE",
        )
    if await certificates.get(user_id, course_id) is not None:
        raise Conflict(
            "Certificate already generated for this course", code="CERTIFICATE_EXISTS"
        )
    course = await courses.get(course_id)
    if course is None:
        raise NotFound("Course not found")

    certificate = Certificate.issue(
        user_id=user_id, course_id=course_id, issued_at_ms=clock_ms()
    )
    try:
        await certificates.add(certificate)
    except DuplicateKeyError as exc:
        raise Conflict(
            "Certificate already generated for this course",
            code="CERTIFICATE_EXISTS",
            field=exc.field,
        ) from None

    CERTIFICATES_ISSUED.inc()
    logger.info(
        "Certificate issued user=%s course=%s",
        user_id,
        course_id,
        extra={"user_id": str(user_id), "course_id": str(course_id)},
    )
    return certificate, course


async def list_certificates(
    user_id: UUID,
    *,
    offset: int,
    limit: int,
    courses: CourseRepo,
    certificates: CertificateRepo,
) -> tuple[list[tuple[Certificate, Course | None]], int]:
    items = await certificates.find_by_user(user_id, offset=offset, limit=limit)
    total = await certificates.count_by_user(user_id)
    return [(c, await courses.get(c.course_id)) for c in items], total
