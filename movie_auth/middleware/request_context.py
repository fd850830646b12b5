"""Request context middleware: request IDs and per-request timing.

Each request gets an ID (the client's ``X-Request-ID`` or a fresh UUID).
The ID is held in ``request_id_var`` while the request runs, so every log
line emitted on its behalf is stamped with it by the handler filter that
``setup_logging`` installs, including lines from the OAuth2 services,
which know nothing about HTTP.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from movie_auth.core.logging import request_id_var

logger = logging.getLogger(__name__)

# Client-supplied IDs end up verbatim in log lines; anything else is replaced.
_CLIENT_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _request_id_for(request: Request) -> str:
    supplied = request.headers.get("x-request-id", "")
    if _CLIENT_ID_RE.match(supplied):
        return supplied
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, time the request, log one summary line.

    The summary is INFO for 2xx/3xx/4xx and ERROR for 5xx.  Only the URL
    path is logged: the OAuth2 callback carries the authorization code in
    its query string.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = _request_id_for(request)
        ctx_token = request_id_var.set(req_id)
        started = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(ctx_token)

        duration_ms = round((time.monotonic() - started) * 1000, 1)
        path = request.url.path
        level = logging.ERROR if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s → %d (%.1fms)",
            request.method,
            path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
