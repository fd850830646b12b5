from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from movie_auth.core.config import SETTINGS
from movie_auth.core.errors import TokenInvalidError
from movie_auth.models.principal import Principal
from movie_auth.repos.user_repo import InMemoryUserRepo
from movie_auth.services.auth_service import AuthenticationService
from movie_auth.services.oauth_flow import OAuthFlowCoordinator
from movie_auth.services.oauth_providers import build_provider_clients
from movie_auth.services.oauth_session_store import OAuthSessionStore
from movie_auth.services.token_service import TokenService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singletons, built once from SETTINGS.
# Routes reach them through the get_* dependencies below so tests can swap
# any of them with app.dependency_overrides.
# ---------------------------------------------------------------------------
user_repo = InMemoryUserRepo()
token_service = TokenService(
    SETTINGS.jwt_secret, expiration_hours=SETTINGS.jwt_expiration_hours
)
auth_service = AuthenticationService(user_repo, token_service)
session_store = OAuthSessionStore(
    session_timeout=SETTINGS.oauth_session_timeout_sec,
    reaper_interval=SETTINGS.oauth_reaper_interval_sec,
)
flow_coordinator = OAuthFlowCoordinator(
    session_store,
    auth_service,
    token_service,
    build_provider_clients(SETTINGS),
)


def get_token_service() -> TokenService:
    return token_service


def get_auth_service() -> AuthenticationService:
    return auth_service


def get_flow_coordinator() -> OAuthFlowCoordinator:
    return flow_coordinator


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> Principal:
    """Validate the bearer token and return the caller's Principal.

    Fails closed: anything short of a valid, unexpired token is a 401.
    """
    if not tokens.validate(raw_token):
        logger.warning("Bearer token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = tokens.decode(raw_token)
    except TokenInvalidError:
        # Expired between validate() and decode().
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=str(claims["user_id"]),
        email=str(claims["sub"]),
        username=str(claims.get("username", "")),
    )
    logger.debug("Token validated for user=%s", principal.user_id)
    return principal
