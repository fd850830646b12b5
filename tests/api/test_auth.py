"""Tests for the JSON auth endpoints: /auth/register, /auth/login, /auth/me."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from movie_auth.api import auth as auth_module
from movie_auth.api import dependencies
from movie_auth.services.token_service import TokenService
from tests.conftest import bearer, seed_user


def _register(client: TestClient, **overrides):
    body = {
        "email": "ada@example.com",
        "username": "ada",
        "password": "pw123456",
        "firstName": "Ada",
        "lastName": "Lovelace",
    }
    body.update(overrides)
    return client.post("/auth/register", json=body)


# ---- register ----


def test_register_returns_token_and_user(client: TestClient) -> None:
    resp = _register(client)

    assert resp.status_code == 201
    body = resp.json()
    assert body["user"]["email"] == "ada@example.com"
    assert body["user"]["username"] == "ada"
    assert dependencies.token_service.validate(body["token"])
    assert dependencies.user_repo.find_by_email("ada@example.com") is not None


def test_register_duplicate_email_is_409(client: TestClient) -> None:
    assert _register(client).status_code == 201

    resp = _register(client, username="someone-else")
    assert resp.status_code == 409
    assert resp.json() == {"error": "duplicate_email", "message": "Email already exists"}


def test_register_duplicate_username_is_409(client: TestClient) -> None:
    assert _register(client).status_code == 201

    resp = _register(client, email="other@example.com")
    assert resp.status_code == 409
    assert resp.json()["error"] == "duplicate_username"
    assert dependencies.user_repo.find_by_email("other@example.com") is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"email": "not-an-email"},
        {"username": "ab"},
        {"username": "has spaces"},
        {"password": "short"},
    ],
)
def test_register_rejects_invalid_input(client: TestClient, overrides: dict) -> None:
    resp = _register(client, **overrides)
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


# ---- login ----


def test_login_success(client: TestClient) -> None:
    user = seed_user()

    resp = client.post(
        "/auth/login", json={"email": "tee@example.com", "password": "correct-horse"}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"] == {
        "id": str(user.id),
        "email": "tee@example.com",
        "username": "tee",
    }
    assert dependencies.token_service.extract_user_id(body["token"]) == str(user.id)


def test_login_wrong_password_and_unknown_email_look_the_same(
    client: TestClient,
) -> None:
    seed_user()

    wrong = client.post(
        "/auth/login", json={"email": "tee@example.com", "password": "wrong-horse"}
    )
    unknown = client.post(
        "/auth/login", json={"email": "nobody@example.com", "password": "correct-horse"}
    )
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json()


def test_login_inactive_account_is_403(client: TestClient) -> None:
    seed_user(is_active=False)

    resp = client.post(
        "/auth/login", json={"email": "tee@example.com", "password": "correct-horse"}
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "account_inactive"


def test_local_auth_can_be_switched_off(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    disabled = replace(auth_module.SETTINGS, local_auth_enabled=False)
    monkeypatch.setattr(auth_module, "SETTINGS", disabled)

    assert _register(client).status_code == 404
    resp = client.post(
        "/auth/login", json={"email": "tee@example.com", "password": "correct-horse"}
    )
    assert resp.status_code == 404


# ---- me ----


def test_me_returns_profile(client: TestClient) -> None:
    token = _register(client).json()["token"]

    resp = client.get("/auth/me", headers=bearer(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["email"] == "ada@example.com"
    assert body["firstName"] == "Ada"
    assert body["isActive"] is True
    assert body["provider"] is None


def test_me_without_token_is_401(client: TestClient) -> None:
    assert client.get("/auth/me").status_code == 401


def test_me_with_garbage_token_is_401(client: TestClient) -> None:
    resp = client.get("/auth/me", headers=bearer("not.a.jwt"))
    assert resp.status_code == 401
    assert resp.headers.get("www-authenticate") == "Bearer"


def test_me_with_expired_token_is_401(client: TestClient) -> None:
    user = seed_user()
    past = datetime.now(UTC) - timedelta(hours=3)
    stale = TokenService(
        dependencies.SETTINGS.jwt_secret, clock=lambda: past
    ).issue(user)

    assert client.get("/auth/me", headers=bearer(stale)).status_code == 401
