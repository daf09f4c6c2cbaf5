"""Module-level repository singletons.

Same conditional pattern as the Redis-backed services: PostgreSQL when
DATABASE_URL is configured, in-memory otherwise.  Routers and services
import the instances from here so tests can reset a single place.
"""

from __future__ import annotations

from microcourses.db.engine import async_session_factory
from microcourses.repos.certificate_repo import CertificateRepo, InMemoryCertificateRepo
from microcourses.repos.course_repo import CourseRepo, InMemoryCourseRepo
from microcourses.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from microcourses.repos.user_repo import InMemoryUserRepo, UserRepo

user_repo: UserRepo
course_repo: CourseRepo
enrollment_repo: EnrollmentRepo
certificate_repo: CertificateRepo

if async_session_factory is not None:
    from microcourses.repos.pg_certificate_repo import PgCertificateRepo
    from microcourses.repos.pg_course_repo import PgCourseRepo
    from microcourses.repos.pg_enrollment_repo import PgEnrollmentRepo
    from microcourses.repos.pg_user_repo import PgUserRepo

    user_repo = PgUserRepo(async_session_factory)
    course_repo = PgCourseRepo(async_session_factory)
    enrollment_repo = PgEnrollmentRepo(async_session_factory)
    certificate_repo = PgCertificateRepo(async_session_factory)
else:
    user_repo = InMemoryUserRepo()
    course_repo = InMemoryCourseRepo()
    enrollment_repo = InMemoryEnrollmentRepo()
    certificate_repo = InMemoryCertificateRepo()
