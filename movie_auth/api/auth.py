"""JSON auth endpoints for SPA clients (/auth/register, /auth/login, /auth/me).

Register and login both return { token, user: { id, email, username } }
so the client can keep the token in memory and go straight on.
Failures come back as { error, message } with the error's status code.
"""

from __future__ import annotations

import logging
import re
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from movie_auth.api.dependencies import get_auth_service, require_user, user_repo
from movie_auth.core.config import SETTINGS
from movie_auth.core.errors import AuthError
from movie_auth.models.principal import Principal
from movie_auth.services.auth_service import AuthenticationService, AuthResult

logger = logging.getLogger(__name__)


def _require_local_auth() -> None:
    if not SETTINGS.local_auth_enabled:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "local authentication disabled")


router = APIRouter(prefix="/auth", tags=["auth"])

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,50}$")


# --- Request / Response schemas -------------------------------------------


class LoginIn(BaseModel):
    email: str
    password: str


class RegisterIn(BaseModel):
    email: str
    username: str
    password: str
    firstName: str | None = None
    lastName: str | None = None


class UserOut(BaseModel):
    id: str
    email: str
    username: str


class AuthResponse(BaseModel):
    token: str
    user: UserOut


class ProfileOut(UserOut):
    firstName: str | None = None
    lastName: str | None = None
    provider: str | None = None
    isActive: bool


def _validation_error(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "validation_error", "message": message},
    )


def _error_response(exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(token=result.token, user=UserOut(**result.user.summary()))


# --- POST /auth/register --------------------------------------------------


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(_require_local_auth)],
    responses={409: {"description": "Email or username already exists"}},
)
def register(
    payload: RegisterIn,
    auth: Annotated[AuthenticationService, Depends(get_auth_service)],
) -> AuthResponse | JSONResponse:
    email = payload.email.lower().strip()
    username = payload.username.strip()

    if not _EMAIL_RE.match(email):
        return _validation_error("Invalid email address")
    if not _USERNAME_RE.match(username):
        return _validation_error(
            "Username must be 3-50 letters, digits, '.', '_' or '-'"
        )
    if len(payload.password) < 8:
        return _validation_error("Password must be at least 8 characters")

    try:
        result = auth.register_with_password(
            email,
            username,
            payload.password,
            first_name=payload.firstName,
            last_name=payload.lastName,
        )
    except AuthError as e:
        logger.info("Registration refused  reason=%s", e.code)
        return _error_response(e)

    return _auth_response(result)


# --- POST /auth/login -----------------------------------------------------


@router.post(
    "/login",
    response_model=AuthResponse,
    dependencies=[Depends(_require_local_auth)],
    responses={401: {"description": "Invalid credentials"}},
)
def login(
    payload: LoginIn,
    auth: Annotated[AuthenticationService, Depends(get_auth_service)],
) -> AuthResponse | JSONResponse:
    try:
        result = auth.login_with_password(payload.email, payload.password)
    except AuthError as e:
        logger.warning("Login failed  reason=%s", e.code)
        return _error_response(e)

    logger.info("Login succeeded  user_id=%s", result.user.id)
    return _auth_response(result)


# --- GET /auth/me ---------------------------------------------------------


@router.get("/me", response_model=ProfileOut)
def me(principal: Annotated[Principal, Depends(require_user)]) -> ProfileOut:
    """Profile of the token's owner."""
    user = user_repo.find_by_id(UUID(principal.user_id))
    if user is None:
        raise HTTPException(status_code=404, detail="user not found")

    return ProfileOut(
        **user.summary(),
        firstName=user.first_name,
        lastName=user.last_name,
        provider=user.provider,
        isActive=user.is_active,
    )
