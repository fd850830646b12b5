"""Tests for the request context middleware.

Every response gets an X-Request-ID header (generated or echoed), and
the per-request summary line never includes the query string.
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_malformed_request_id_is_replaced(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
    req_id = resp.headers.get("x-request-id")
    assert req_id != "bad id with spaces"
    uuid.UUID(req_id)


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/auth/me")  # no bearer token -> 401
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_summary_line_omits_query_string(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(
        logging.INFO, logger="movie_auth.middleware.request_context"
    ):
        client.get("/health", params={"code": "should-not-be-logged"})

    records = [
        r for r in caplog.records if r.name == "movie_auth.middleware.request_context"
    ]
    assert records
    assert records[-1].path == "/health"
    assert "should-not-be-logged" not in caplog.text
