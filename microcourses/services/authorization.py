"""The authorization gate.

Every permission decision in the service goes through `authorize`: role
membership, the approved-creator requirement and resource ownership.
Route dependencies call it before any lookup (role, approval); workflow
services call it again with `owner_id` once the resource is loaded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from microcourses.core.errors import Forbidden
from microcourses.models.principal import Principal

logger = logging.getLogger(__name__)

AUTHORS = frozenset({"creator", "admin"})


def authorize(
    principal: Principal,
    allowed_roles: Iterable[str],
    *,
    owner_id: UUID | None = None,
    require_approved: bool = False,
    denied_message: str = "Not authorized to access this resource",
) -> Principal:
    """Return the principal if allowed; raise Forbidden otherwise.

    Checks, in order:
      1. role in allowed_roles                      -> FORBIDDEN
      2. approved creator (when require_approved)   -> CREATOR_NOT_APPROVED
      3. owner or admin (when owner_id is given)    -> FORBIDDEN
    Admins are never subject to the approval check.
    """
    roles = frozenset(allowed_roles)
    if not principal.has_any_role(roles):
        logger.warning(
            "Access denied: user=%s role=%s not in %s",
            principal.user_id,
            principal.role,
            sorted(roles),
        )
        raise Forbidden(
            f"User role {principal.role} is not authorized to access this route"
        )

    if require_approved and principal.role == "creator" and not principal.approved_creator:
        logger.warning("Access denied: creator=%s not approved", principal.user_id)
        raise Forbidden("Creator account not approved yet", code="CREATOR_NOT_APPROVED")

    if owner_id is not None and not (principal.is_admin() or principal.owns(owner_id)):
        logger.warning(
            "Access denied: user=%s does not own resource owned by %s",
            principal.user_id,
            owner_id,
        )
        raise Forbidden(denied_message)

    return principal
