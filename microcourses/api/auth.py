"""JSON auth endpoints: /api/auth/register, /api/auth/login, /api/auth/me.

Register and login both return {success, token, user} so a client can
keep the token and continue immediately.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from microcourses.api.dependencies import CurrentUser
from microcourses.api.ratelimit import require_rate_limit
from microcourses.api.schemas import NonBlank, UserOut
from microcourses.models.user import User
from microcourses.repos import registry
from microcourses.services import token_service, users_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
    dependencies=[Depends(require_rate_limit())],
)


class RegisterIn(BaseModel):
    email: NonBlank
    password: NonBlank
    role: str | None = None


class LoginIn(BaseModel):
    email: NonBlank
    password: NonBlank


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    user: UserOut


class MeResponse(BaseModel):
    success: bool = True
    user: UserOut


def _auth_response(user: User) -> AuthResponse:
    token = token_service.create_access_token(sub=str(user.id), role=user.role)
    return AuthResponse(token=token, user=UserOut.of(user))


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(payload: RegisterIn) -> AuthResponse:
    user = await users_service.register(
        email=payload.email,
        password=payload.password,
        role=payload.role,
        users=registry.user_repo,
    )
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginIn) -> AuthResponse:
    user = await users_service.login(
        email=payload.email, password=payload.password, users=registry.user_repo
    )
    return _auth_response(user)


@router.get("/me", response_model=MeResponse)
async def me(user: CurrentUser) -> MeResponse:
    return MeResponse(user=UserOut.of(user))
