from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

# HS256 wants at least 256 bits of key material.
DEV_JWT_SECRET = "movieTracker2024SecretKeyThatIsLongEnoughForHS256Algorithm"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _getint(name: str, default: int, *, minimum: int = 0) -> int:
    raw = _getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int

    # Bearer tokens
    jwt_secret: str
    jwt_expiration_hours: int

    # OAuth2 session broker
    oauth_session_timeout_sec: int
    oauth_reaper_interval_sec: int

    # Feature switches
    local_auth_enabled: bool
    oauth2_enabled: bool

    # Redirect targets and provider credentials
    api_base_url: str
    oauth2_redirect_uri: str
    google_client_id: str | None
    google_client_secret: str | None
    cookie_secure: bool

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getint("PORT", 8081)

    jwt_secret = _getenv("JWT_SECRET", DEV_JWT_SECRET)
    if len(jwt_secret.encode("utf-8")) < 32:
        raise ValueError("JWT_SECRET must be at least 32 bytes for HS256")
    if app_env_raw == "prod" and jwt_secret == DEV_JWT_SECRET:
        raise ValueError("JWT_SECRET must be set explicitly when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        jwt_secret=jwt_secret,
        jwt_expiration_hours=_getint("JWT_EXPIRATION_HOURS", 1, minimum=1),
        oauth_session_timeout_sec=_getint(
            "OAUTH_SESSION_TIMEOUT_SEC", 600, minimum=1
        ),
        oauth_reaper_interval_sec=_getint(
            "OAUTH_REAPER_INTERVAL_SEC", 300, minimum=1
        ),
        local_auth_enabled=_getbool("LOCAL_AUTH_ENABLED", True),
        oauth2_enabled=_getbool("OAUTH2_ENABLED", False),
        api_base_url=_getenv("API_BASE_URL", "http://localhost:8081").rstrip("/"),
        oauth2_redirect_uri=_getenv(
            "OAUTH2_REDIRECT_URI", "http://localhost:3001/auth/callback"
        ),
        google_client_id=_getenv("GOOGLE_CLIENT_ID", "") or None,
        google_client_secret=_getenv("GOOGLE_CLIENT_SECRET", "") or None,
        cookie_secure=_getbool("COOKIE_SECURE", app_env_raw == "prod"),
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
