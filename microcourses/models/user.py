from __future__ import annotations

import time
from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    password_hash: str
    role: str = "learner"  # learner|creator|admin
    approved_creator: bool = False
    created_at: int = 0

    @staticmethod
    def new(
        *,
        email: str,
        password_hash: str,
        role: str = "learner",
        approved_creator: bool = False,
    ) -> User:
        return User(
            id=uuid4(),
            email=email,
            password_hash=password_hash,
            role=role,
            approved_creator=approved_creator,
            created_at=int(time.time()),
        )

    @property
    def is_pending_creator(self) -> bool:
        return self.role == "creator" and not self.approved_creator
