"""Liveness endpoints.

  /health: process is up; also reports how many OAuth2 broker sessions
            are held in memory and whether the reaper thread is running
  /      : service banner
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends

from movie_auth.api.dependencies import get_flow_coordinator, session_store
from movie_auth.core.config import SETTINGS
from movie_auth.services.oauth_flow import OAuthFlowCoordinator

router = APIRouter(tags=["health"])

SERVICE_NAME = "movie-auth"


@router.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(UTC).isoformat(),
        "oauth_sessions": len(session_store),
        "session_reaper": "running" if session_store.running else "stopped",
    }


@router.get("/")
def root(
    coordinator: Annotated[OAuthFlowCoordinator, Depends(get_flow_coordinator)],
) -> dict:
    endpoints = {"health": "/health", "metrics": "/metrics"}
    if SETTINGS.local_auth_enabled:
        endpoints["login"] = "/auth/login"
        endpoints["register"] = "/auth/register"
    if SETTINGS.oauth2_enabled:
        endpoints["oauth2_authorize"] = "/oauth2/authorize/{provider}"
        endpoints["oauth2_exchange"] = "/oauth2/session/exchange"
    providers = sorted(coordinator.providers) if SETTINGS.oauth2_enabled else []
    return {
        "service": SERVICE_NAME,
        "status": "running",
        "endpoints": endpoints,
        "oauth2_providers": providers,
    }
