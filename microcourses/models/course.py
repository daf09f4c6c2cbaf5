"""Course aggregate: a course owns its ordered, append-only lessons.

Lesson positions come from `Course.next_lesson_index`, a counter that only
ever increases, never from `len(lessons)`.  Repositories reserve the next
index and bump the counter in one step, so two appends can never be
handed the same position.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from uuid import UUID, uuid4

COURSE_STATUSES = ("draft", "pending", "published", "rejected")

TRANSCRIPT_EXCERPT_CHARS = 800
AUTO_TRANSCRIPT_MARKER = "[Auto-generated transcript]"

# (from, to) pairs an owning creator (or an admin acting as owner) may apply.
AUTHOR_TRANSITIONS = frozenset(
    {
        ("draft", "pending"),
        ("pending", "draft"),
        ("rejected", "draft"),
        ("rejected", "pending"),
    }
)
# (from, to) pairs only the admin review may apply.
REVIEW_TRANSITIONS = frozenset({("pending", "published"), ("pending", "rejected")})

AUTHOR_STATUSES = ("draft", "pending")
REVIEW_STATUSES = ("published", "rejected")


def derive_transcript(content: str, transcript: str | None = None) -> str:
    """Return the supplied transcript, or one derived from the content."""
    if transcript and transcript.strip():
        return transcript
    if not content:
        return ""
    excerpt = content[:TRANSCRIPT_EXCERPT_CHARS]
    if len(content) > TRANSCRIPT_EXCERPT_CHARS:
        excerpt += "..."
    return f"{excerpt}\n\n{AUTO_TRANSCRIPT_MARKER}"


@dataclass(frozen=True, slots=True)
class LessonDraft:
    """Lesson fields supplied by an author, before a position is assigned."""

    title: str
    content: str
    video_url: str = ""
    duration: int = 0
    transcript: str | None = None


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    title: str
    content: str
    order_index: int
    video_url: str = ""
    duration: int = 0
    transcript: str = ""

    @staticmethod
    def from_draft(draft: LessonDraft, *, order_index: int) -> Lesson:
        return Lesson(
            id=uuid4(),
            title=draft.title,
            content=draft.content,
            order_index=order_index,
            video_url=draft.video_url or "",
            duration=draft.duration or 0,
            transcript=derive_transcript(draft.content, draft.transcript),
        )


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    description: str
    creator_id: UUID
    status: str = "draft"  # draft|pending|published|rejected
    lessons: tuple[Lesson, ...] = field(default=())
    next_lesson_index: int = 0
    created_at: int = 0

    @staticmethod
    def new(*, title: str, description: str, creator_id: UUID) -> Course:
        return Course(
            id=uuid4(),
            title=title,
            description=description,
            creator_id=creator_id,
            created_at=int(time.time()),
        )

    @property
    def total_lessons(self) -> int:
        return len(self.lessons)

    @property
    def is_published(self) -> bool:
        return self.status == "published"

    def lesson(self, lesson_id: UUID) -> Lesson | None:
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        return None

    def with_lesson(self, draft: LessonDraft) -> Course:
        """Append a lesson at the next reserved position."""
        lesson = Lesson.from_draft(draft, order_index=self.next_lesson_index)
        return replace(
            self,
            lessons=(*self.lessons, lesson),
            next_lesson_index=self.next_lesson_index + 1,
        )


def can_transition(current: str, target: str, *, review: bool) -> bool:
    """Whether the publication workflow allows current -> target.

    `review` selects the admin review edge set; otherwise the author edge
    set applies.  Re-applying the current status is always allowed.
    """
    if current == target:
        return True
    edges = REVIEW_TRANSITIONS if review else AUTHOR_TRANSITIONS
    return (current, target) in edges
