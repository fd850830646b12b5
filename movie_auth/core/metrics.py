"""Prometheus metrics inventory.

All metrics live here; modules import the one they need and update it
where the behavior happens.  ``/metrics`` exposes them for scraping.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

AUTH_ATTEMPTS = Counter(
    "auth_attempts_total",
    "Authentication attempts by method and result",
    ["method", "result"],  # method: password|register|oauth2
)

TOKEN_VALIDATIONS = Counter(
    "token_validations_total",
    "Bearer token validations by result",
    ["result"],  # valid|invalid|expired
)

# ---------------------------------------------------------------------------
# OAuth2 authorization-code + PKCE flow
# ---------------------------------------------------------------------------

OAUTH_FLOW_EVENTS = Counter(
    "oauth_flow_events_total",
    "OAuth2 flow steps by outcome",
    ["step", "result"],  # step: initiate|callback|exchange
)

# Kept apart from OAUTH_FLOW_EVENTS so a CSRF alert can key on one series.
CSRF_STATE_MISMATCH = Counter(
    "oauth_csrf_state_mismatch_total",
    "OAuth2 callbacks rejected because the state parameter did not match",
    ["provider"],
)

OAUTH_SESSIONS = Gauge(
    "oauth_sessions_active",
    "OAuth2 broker sessions currently held in memory",
)

OAUTH_SESSIONS_REAPED = Counter(
    "oauth_sessions_reaped_total",
    "Expired OAuth2 broker sessions removed by the background reaper",
)
