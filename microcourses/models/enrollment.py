"""Enrollment state machine for one (learner, course) pair.

    not-enrolled -> enrolled (progress 0)
                 -> in_progress (0 < progress < 100)
                 -> completed (progress 100)

Progress is never stored independently of the completion set: every
update recomputes it from the set size and the course's *current* lesson
count.  `completed` latches: once true it stays true even if the course
later gains lessons and the recomputed progress drops below 100.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from uuid import UUID, uuid4


def compute_progress(completed_count: int, total_lessons: int) -> int:
    """Percentage of lessons completed, rounded half up, within 0..100."""
    if total_lessons <= 0:
        return 0
    # floor(100 * c / t + 0.5) in integer arithmetic
    percent = (200 * completed_count + total_lessons) // (2 * total_lessons)
    return max(0, min(100, percent))


@dataclass(frozen=True, slots=True)
class Enrollment:
    id: UUID
    user_id: UUID
    course_id: UUID
    completed_lessons: tuple[UUID, ...] = ()
    progress: int = 0
    completed: bool = False
    enrolled_at: int = 0

    @staticmethod
    def new(*, user_id: UUID, course_id: UUID) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            enrolled_at=int(time.time()),
        )

    @property
    def status(self) -> str:
        if self.completed:
            return "completed"
        if self.progress > 0:
            return "in_progress"
        return "enrolled"

    def has_completed(self, lesson_id: UUID) -> bool:
        return lesson_id in self.completed_lessons

    def with_lesson_completed(self, lesson_id: UUID, total_lessons: int) -> Enrollment:
        """Record a lesson as complete and recompute progress.

        Completing an already-completed lesson leaves the set unchanged;
        progress is still recomputed against `total_lessons`.
        """
        lessons = self.completed_lessons
        if lesson_id not in lessons:
            lessons = (*lessons, lesson_id)
        progress = compute_progress(len(lessons), total_lessons)
        return replace(
            self,
            completed_lessons=lessons,
            progress=progress,
            completed=self.completed or progress == 100,
        )
