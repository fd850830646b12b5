from __future__ import annotations

import json
import logging

from movie_auth.core.logging import (
    RequestIdFilter,
    _ContainerFormatter,
    _JsonFormatter,
    redact_id,
    request_id_var,
    setup_logging,
)


def _record(level: int, msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING
    setup_logging("info")


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_keeps_httpx_quiet_at_debug() -> None:
    # httpx would log provider URLs, authorization code included.
    setup_logging("debug")
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("uvicorn").level == logging.WARNING
    setup_logging("info")


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO, "hello"))
    assert "hello" in output
    assert "[test.py:" not in output


def test_formatter_includes_location_and_event_for_warning() -> None:
    record = _record(logging.WARNING, "bad thing", event="csrf_state_mismatch")
    output = _ContainerFormatter().format(record)
    assert "[test.py:42]" in output
    assert output.endswith("event=csrf_state_mismatch")


def test_json_formatter_lifts_context_fields() -> None:
    record = _record(
        logging.WARNING,
        "state mismatch",
        event="csrf_state_mismatch",
        provider="google",
        request_id="req-1",
    )
    entry = json.loads(_JsonFormatter().format(record))
    assert entry["level"] == "WARNING"
    assert entry["message"] == "state mismatch"
    assert entry["event"] == "csrf_state_mismatch"
    assert entry["provider"] == "google"
    assert entry["request_id"] == "req-1"
    assert "user_id" not in entry


def test_redact_id_keeps_short_prefix() -> None:
    assert redact_id("0123456789abcdef") == "01234567…"
    assert redact_id(None) == "-"
    assert redact_id("") == "-"


def test_request_id_filter_stamps_current_request() -> None:
    record = _record(logging.INFO, "inside a request")
    reset = request_id_var.set("req-42")
    try:
        assert RequestIdFilter().filter(record)
    finally:
        request_id_var.reset(reset)

    assert record.request_id == "req-42"
    assert _ContainerFormatter().format(record).endswith("rid=req-42")


def test_request_id_filter_outside_a_request() -> None:
    record = _record(logging.INFO, "startup")
    RequestIdFilter().filter(record)
    assert record.request_id == "-"
    assert "rid=" not in _ContainerFormatter().format(record)


def test_setup_logging_installs_request_id_filter_on_handler() -> None:
    setup_logging("info")
    (handler,) = logging.getLogger().handlers
    assert any(isinstance(f, RequestIdFilter) for f in handler.filters)
