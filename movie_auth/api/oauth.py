from __future__ import annotations

import logging
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Cookie, Depends, Query, status
from fastapi.responses import JSONResponse, RedirectResponse, Response

from movie_auth.api.dependencies import get_flow_coordinator
from movie_auth.core.config import SETTINGS
from movie_auth.core.errors import AuthError, InvalidOrExpiredSessionError
from movie_auth.services.oauth_flow import OAuthFlowCoordinator

# ---------------------------------------------------------------------------
# Third-party login (authorization code + PKCE) with a session broker.
#
# Endpoints:
#   GET  /oauth2/authorize/{provider}   : start: cookie + authorization URL
#   GET  /login/oauth2/code/{provider}  : provider callback → frontend redirect
#   POST /oauth2/session/exchange       : cookie → { success, user, token }, once
#
# The oauth2-session cookie (HttpOnly) carries the broker session id and
# is the only thing the browser holds until the exchange.  Neither the
# token nor the PKCE verifier ever appears in a URL.
# ---------------------------------------------------------------------------

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth2"])

SESSION_COOKIE = "oauth2-session"

Coordinator = Annotated[OAuthFlowCoordinator, Depends(get_flow_coordinator)]
SessionCookie = Annotated[str | None, Cookie(alias=SESSION_COOKIE)]


def _set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        httponly=True,
        secure=SETTINGS.cookie_secure,
        samesite="lax",
        path="/",
        max_age=SETTINGS.oauth_session_timeout_sec,
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=SETTINGS.cookie_secure,
        samesite="lax",
    )


def _frontend_redirect(**params: str) -> RedirectResponse:
    url = f"{SETTINGS.oauth2_redirect_uri}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


# ===================== GET /oauth2/authorize/{provider} =====================


@router.get("/oauth2/authorize/{provider}")
def authorize(provider: str, coordinator: Coordinator) -> JSONResponse:
    try:
        request = coordinator.initiate(provider)
    except AuthError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"error": f"Failed to initiate OAuth2 flow: {e.message}"},
        )

    response = JSONResponse(
        content={
            "authorizationUrl": request.authorization_url,
            "state": request.state,
        }
    )
    _set_session_cookie(response, request.session_id)
    return response


# ===================== GET /login/oauth2/code/{provider} ====================
# The provider sends the browser here.  Whatever happens, the browser goes
# on to the frontend callback page with success=true|false.


@router.get("/login/oauth2/code/{provider}")
def provider_callback(
    provider: str,
    coordinator: Coordinator,
    session_id: SessionCookie = None,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
) -> RedirectResponse:
    try:
        coordinator.handle_callback(
            session_id,
            state,
            code,
            provider=provider,
            provider_error=error,
        )
    except AuthError as e:
        return _frontend_redirect(success="false", error=e.code)

    return _frontend_redirect(success="true")


# ======================= POST /oauth2/session/exchange ======================


@router.post("/oauth2/session/exchange")
def exchange_session(
    coordinator: Coordinator,
    session_id: SessionCookie = None,
) -> JSONResponse:
    if not session_id:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "No session found"},
        )

    try:
        result = coordinator.exchange(session_id)
    except InvalidOrExpiredSessionError as e:
        response = JSONResponse(
            status_code=e.status_code, content={"error": e.message}
        )
        _clear_session_cookie(response)
        return response

    response = JSONResponse(
        content={"success": True, "user": result.user, "token": result.token}
    )
    _clear_session_cookie(response)
    return response
