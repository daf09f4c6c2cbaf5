"""Optional demo content for local development (SEED_DEMO=true).

Creates an approved demo creator and one published course with two
lessons so the learner flow can be exercised right after startup.
Skipped when the demo creator already exists.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from microcourses.models.course import Course, LessonDraft
from microcourses.models.user import User
from microcourses.repos.course_repo import CourseRepo
from microcourses.repos.user_repo import UserRepo
from microcourses.services import auth_service

logger = logging.getLogger(__name__)

DEMO_CREATOR_EMAIL = "creator@demo.local"
DEMO_CREATOR_PASSWORD = "demo-creator"


async def seed_demo(*, users: UserRepo, courses: CourseRepo) -> bool:
    """Insert the demo data.  Returns False when it was already present."""
    if await users.get_by_email(DEMO_CREATOR_EMAIL) is not None:
        logger.info("Demo data already present; skipping seed")
        return False

    creator = User.new(
        email=DEMO_CREATOR_EMAIL,
        password_hash=await auth_service.hash_password_async(DEMO_CREATOR_PASSWORD),
        role="creator",
        approved_creator=True,
    )
    await users.add(creator)

    course = Course.new(
        title="Introduction to Python",
        description="A short walk through Python basics: values, functions and modules.",
        creator_id=creator.id,
    )
    await courses.add(replace(course, status="published"))
    for draft in (
        LessonDraft(
            title="Values and types",
            content="Numbers, strings and booleans, and how Python decides what they are.",
            duration=8,
        ),
        LessonDraft(
            title="Functions",
            content="Defining functions, arguments and return values.",
            duration=12,
        ),
    ):
        await courses.append_lesson(course.id, draft)

    logger.info("Seeded demo creator and course course_id=%s", course.id)
    return True
