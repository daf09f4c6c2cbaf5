from __future__ import annotations

import asyncio

from microcourses.repos.course_repo import InMemoryCourseRepo
from microcourses.repos.user_repo import InMemoryUserRepo
from microcourses.services.seed import DEMO_CREATOR_EMAIL, seed_demo


def test_seed_demo_creates_published_course_once() -> None:
    users, courses = InMemoryUserRepo(), InMemoryCourseRepo()

    assert asyncio.run(seed_demo(users=users, courses=courses)) is True
    assert asyncio.run(seed_demo(users=users, courses=courses)) is False

    creator = asyncio.run(users.get_by_email(DEMO_CREATOR_EMAIL))
    assert creator is not None
    assert creator.role == "creator" and creator.approved_creator

    published = asyncio.run(courses.find(status="published"))
    assert len(published) == 1
    assert published[0].creator_id == creator.id
    assert [lesson.order_index for lesson in published[0].lessons] == [0, 1]
