"""Prometheus middleware: request count, latency and in-flight gauge.

Requests are labelled by route template (``/oauth2/authorize/{provider}``,
``/login/oauth2/code/{provider}``) rather than raw path, so provider names
and junk URLs cannot blow up label cardinality.  Unmatched paths fall back
to the raw path.  Scrapes of ``/metrics`` are not recorded.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from movie_auth.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

_UNINSTRUMENTED = frozenset({"/metrics"})


def _route_label(request: Request) -> str:
    # Populated by the router once a route matched.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _record(request: Request, status_code: int, elapsed: float) -> None:
    endpoint = _route_label(request)
    REQUEST_COUNT.labels(
        method=request.method, endpoint=endpoint, status_code=str(status_code)
    ).inc()
    REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(elapsed)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _UNINSTRUMENTED:
            return await call_next(request)

        started = time.monotonic()
        status_code = 500  # unless a response comes back
        with ACTIVE_REQUESTS.track_inprogress():
            try:
                response = await call_next(request)
                status_code = response.status_code
            finally:
                _record(request, status_code, time.monotonic() - started)
        return response
