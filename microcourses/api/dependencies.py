from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from microcourses.core.errors import Unauthorized
from microcourses.models.principal import Principal
from microcourses.models.user import User
from microcourses.repos import registry
from microcourses.services import token_service
from microcourses.services.authorization import authorize

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> User:
    """Resolve the bearer token to the stored user, or 401.

    The token only identifies the caller; role and approval are read from
    the user record so admin decisions take effect on the next request.
    """
    if credentials is None:
        raise Unauthorized()
    try:
        claims = token_service.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise Unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise Unauthorized() from None

    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError:
        logger.warning("Token subject is not a user id")
        raise Unauthorized() from None

    user = await registry.user_repo.get_by_id(user_id)
    if user is None:
        logger.warning("Token subject no longer exists user=%s", user_id)
        raise Unauthorized()
    return user


def require_user(
    user: Annotated[User, Depends(get_current_user)],
) -> Principal:
    principal = Principal(
        user_id=user.id,
        role=user.role,
        approved_creator=user.approved_creator,
    )
    logger.debug("Authenticated user=%s role=%s", principal.user_id, principal.role)
    return principal


def require_roles(*roles: str, approved_creator: bool = False):
    """Dependency factory: demand one of `roles`.

    With approved_creator=True, creators must also have been approved by
    an admin (403 CREATOR_NOT_APPROVED otherwise).

    Usage: Depends(require_roles("creator", "admin", approved_creator=True))
    """
    allowed = frozenset(roles)

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        return authorize(principal, allowed, require_approved=approved_creator)

    return _guard


CurrentUser = Annotated[User, Depends(get_current_user)]
Learner = Annotated[Principal, Depends(require_roles("learner"))]
Admin = Annotated[Principal, Depends(require_roles("admin"))]
Author = Annotated[Principal, Depends(require_roles("creator", "admin"))]
ApprovedAuthor = Annotated[
    Principal, Depends(require_roles("creator", "admin", approved_creator=True))
]
