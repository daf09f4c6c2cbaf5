from __future__ import annotations

import hashlib
from dataclasses import dataclass
from uuid import UUID, uuid4


def certificate_hash(user_id: UUID, course_id: UUID, issued_at_ms: int) -> str:
    """SHA-256 hex digest over (user, course, issuance time in ms)."""
    data = f"{user_id}-{course_id}-{issued_at_ms}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class Certificate:
    """Proof of completion.  Immutable once issued."""

    id: UUID
    user_id: UUID
    course_id: UUID
    certificate_hash: str
    issued_at: int

    @staticmethod
    def issue(*, user_id: UUID, course_id: UUID, issued_at_ms: int) -> Certificate:
        return Certificate(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            certificate_hash=certificate_hash(user_id, course_id, issued_at_ms),
            issued_at=issued_at_ms // 1000,
        )
