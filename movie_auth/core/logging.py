"""Logging configuration for movie-auth.

Two output modes, picked by LOG_JSON:

  _ContainerFormatter: one human-readable line per record, for local dev.
  _JsonFormatter     : JSON Lines for log aggregation in production.

Security-relevant events carry an ``event`` field (passed through
``extra=``) so they can be filtered without parsing message text, e.g.

    {"level": "WARNING", "event": "csrf_state_mismatch", "provider": "google"}

Nothing that reaches a formatter may contain a password, bearer token,
PKCE verifier or authorization code.  Session ids are logged as a short
prefix only (see ``redact_id``).
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar

# Set by RequestContextMiddleware for the duration of one request.
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


def redact_id(value: str | None, keep: int = 8) -> str:
    """Shorten an opaque identifier for log output."""
    if not value:
        return "-"
    return f"{value[:keep]}…"


class RequestIdFilter(logging.Filter):
    """Stamp every record reaching the handler with the current request ID.

    Sits on the handler rather than a logger, so records propagated up from
    the service modules are stamped too.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter tuned for container stdout.

    WARNING+ records get a ``[file:line]`` suffix.  Records handled inside a
    request end with ``rid=<request id>``, and tagged ones with
    ``event=<name>`` so CSRF rejections stand out in a terminal.
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        ms = int(record.msecs)
        # .NNN goes before the timezone offset (last 5 chars: +0000)
        return f"{base[:-5]}.{ms:03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            self._style._fmt = self._BASE_FMT + self._LOC_SUFFIX
        else:
            self._style._fmt = self._BASE_FMT
        line = super().format(record)
        request_id = getattr(record, "request_id", None)
        if request_id and request_id != "-":
            line = f"{line}  rid={request_id}"
        event = getattr(record, "event", None)
        if event:
            line = f"{line}  event={event}"
        return line


class _JsonFormatter(logging.Formatter):
    """JSON formatter: one object per line.

    Context fields are attached by RequestContextMiddleware or by callers
    through ``extra=`` and become top-level keys.
    """

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "event",
        "provider",
        "user_id",
        "session",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger.

    Args:
        level_name: debug/info/warning/error; unknown names fall back to info.
        json_format: emit JSON lines instead of the container format.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # httpx logs full request URLs (including authorization codes) at INFO.
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
