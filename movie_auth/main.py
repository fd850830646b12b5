from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from movie_auth.api.auth import router as auth_router
from movie_auth.api import dependencies
from movie_auth.api.health import router as health_router
from movie_auth.api.metrics_endpoint import router as metrics_router
from movie_auth.api.oauth import router as oauth_router
from movie_auth.core.config import SETTINGS
from movie_auth.core.logging import setup_logging
from movie_auth.middleware.metrics import MetricsMiddleware
from movie_auth.middleware.request_context import RequestContextMiddleware
from movie_auth.services.pkce_service import check_crypto_capabilities

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

# Fail at startup, not on the first login, if the platform lacks
# SHA-256 or a CSPRNG.
check_crypto_capabilities()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # The reaper thread and the provider HTTP clients live exactly as long
    # as the app.
    dependencies.session_store.start()
    try:
        yield
    finally:
        dependencies.session_store.stop()
        dependencies.flow_coordinator.close()


app = FastAPI(
    title="movie-auth",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3001"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(auth_router)
if SETTINGS.oauth2_enabled:
    app.include_router(oauth_router)

logger.info(
    "movie-auth started  env=%s log_level=%s port=%d local_auth=%s oauth2=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.local_auth_enabled else "off",
    "on" if SETTINGS.oauth2_enabled else "off",
)

if SETTINGS.is_prod and not SETTINGS.cookie_secure:
    logger.warning(
        "COOKIE_SECURE is off in prod; the oauth2-session cookie can travel over plain HTTP"
    )
