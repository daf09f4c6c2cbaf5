from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

ROLES = ("learner", "creator", "admin")


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller, rebuilt from the user record on every request.

    Carried through the request via FastAPI's dependency system; the
    authorization gate only ever looks at these three fields.

        user_id:          subject of the bearer token
        role:             learner|creator|admin
        approved_creator: admin has approved this creator for authoring
    """

    user_id: UUID
    role: str
    approved_creator: bool = False

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return self.role in roles

    def is_admin(self) -> bool:
        return self.role == "admin"

    def owns(self, owner_id: UUID) -> bool:
        return self.user_id == owner_id
