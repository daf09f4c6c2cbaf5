"""Request/response schemas shared by the routers.

Wire names are camelCase.  Every success body is an envelope:

    {"success": true, "data": ...}
    {"success": true, "data": [...], "pagination": {page, limit, total, pages}}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel, Field, StringConstraints

from microcourses.models.certificate import Certificate
from microcourses.models.course import Course, Lesson
from microcourses.models.enrollment import Enrollment
from microcourses.models.user import User

T = TypeVar("T")

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# --- Envelopes --------------------------------------------------------------


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class PageEnvelope(BaseModel, Generic[T]):
    success: bool = True
    data: list[T]
    pagination: Pagination


@dataclass(frozen=True, slots=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pagination(self, total: int) -> Pagination:
        pages = (total + self.limit - 1) // self.limit
        return Pagination(page=self.page, limit=self.limit, total=total, pages=pages)


def page_params(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> PageParams:
    return PageParams(page=page, limit=limit)


# --- Users ------------------------------------------------------------------


class UserOut(BaseModel):
    id: str
    email: str
    role: str
    approvedCreator: bool

    @classmethod
    def of(cls, user: User) -> UserOut:
        return cls(
            id=str(user.id),
            email=user.email,
            role=user.role,
            approvedCreator=user.approved_creator,
        )


class CreatorApplicationOut(UserOut):
    createdAt: int

    @classmethod
    def of(cls, user: User) -> CreatorApplicationOut:
        return cls(
            id=str(user.id),
            email=user.email,
            role=user.role,
            approvedCreator=user.approved_creator,
            createdAt=user.created_at,
        )


class UserSummaryOut(BaseModel):
    id: str
    email: str


# --- Courses ----------------------------------------------------------------


class LessonOut(BaseModel):
    id: str
    title: str
    content: str
    videoUrl: str
    orderIndex: int
    duration: int
    transcript: str

    @classmethod
    def of(cls, lesson: Lesson) -> LessonOut:
        return cls(
            id=str(lesson.id),
            title=lesson.title,
            content=lesson.content,
            videoUrl=lesson.video_url,
            orderIndex=lesson.order_index,
            duration=lesson.duration,
            transcript=lesson.transcript,
        )


class CourseOut(BaseModel):
    id: str
    title: str
    description: str
    creatorId: str
    status: str
    lessons: list[LessonOut]
    totalLessons: int
    createdAt: int

    @classmethod
    def of(cls, course: Course) -> CourseOut:
        return cls(
            id=str(course.id),
            title=course.title,
            description=course.description,
            creatorId=str(course.creator_id),
            status=course.status,
            lessons=[LessonOut.of(lesson) for lesson in course.lessons],
            totalLessons=course.total_lessons,
            createdAt=course.created_at,
        )


class CourseSummaryOut(BaseModel):
    id: str
    title: str
    description: str

    @classmethod
    def of(cls, course: Course | None) -> CourseSummaryOut | None:
        if course is None:
            return None
        return cls(id=str(course.id), title=course.title, description=course.description)


class CourseIn(BaseModel):
    title: NonBlank
    description: NonBlank


class CourseUpdateIn(BaseModel):
    title: NonBlank | None = None
    description: NonBlank | None = None
    status: str | None = None


class LessonIn(BaseModel):
    title: NonBlank
    content: NonBlank
    videoUrl: str = ""
    duration: int = Field(default=0, ge=0)
    transcript: str | None = None


class StatusIn(BaseModel):
    status: str


# --- Enrollment / progress --------------------------------------------------


class EnrollmentOut(BaseModel):
    id: str
    userId: str
    courseId: str
    completedLessons: list[str]
    progress: int
    completed: bool
    status: str
    enrolledAt: int

    @classmethod
    def of(cls, enrollment: Enrollment) -> EnrollmentOut:
        return cls(**_enrollment_fields(enrollment))


class ProgressItemOut(EnrollmentOut):
    course: CourseSummaryOut | None

    @classmethod
    def of_pair(cls, enrollment: Enrollment, course: Course | None) -> ProgressItemOut:
        return cls(**_enrollment_fields(enrollment), course=CourseSummaryOut.of(course))


def _enrollment_fields(enrollment: Enrollment) -> dict:
    return {
        "id": str(enrollment.id),
        "userId": str(enrollment.user_id),
        "courseId": str(enrollment.course_id),
        "completedLessons": [str(lid) for lid in enrollment.completed_lessons],
        "progress": enrollment.progress,
        "completed": enrollment.completed,
        "status": enrollment.status,
        "enrolledAt": enrollment.enrolled_at,
    }


class ProgressIn(BaseModel):
    courseId: str = Field(min_length=1)


# --- Certificates -----------------------------------------------------------


class CertificateOut(BaseModel):
    id: str
    certificateHash: str
    issuedAt: int
    user: UserSummaryOut | None = None
    course: CourseSummaryOut | None = None

    @classmethod
    def of(
        cls,
        certificate: Certificate,
        *,
        user: User | None = None,
        course: Course | None = None,
    ) -> CertificateOut:
        return cls(
            id=str(certificate.id),
            certificateHash=certificate.certificate_hash,
            issuedAt=certificate.issued_at,
            user=UserSummaryOut(id=str(user.id), email=user.email) if user else None,
            course=CourseSummaryOut.of(course),
        )
