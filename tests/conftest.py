from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

# Settings are read at import time; pin the test environment first.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("OAUTH2_ENABLED", "true")
os.environ.setdefault("LOCAL_AUTH_ENABLED", "true")
os.environ.setdefault("OAUTH2_REDIRECT_URI", "http://localhost:3001/auth/callback")

# Ensure repo root is on sys.path so `import movie_auth` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from movie_auth.api import dependencies  # noqa: E402
from movie_auth.main import app  # noqa: E402
from movie_auth.models.user import User  # noqa: E402
from movie_auth.services.auth_service import hash_password  # noqa: E402
from movie_auth.services.oauth_flow import OAuthFlowCoordinator  # noqa: E402

TEST_SECRET = "test-secret-that-is-definitely-longer-than-32-bytes"

GOOGLE_ATTRIBUTES: dict[str, Any] = {
    "sub": "google-uid-123",
    "email": "ada@example.com",
    "given_name": "Ada",
    "family_name": "Lovelace",
}


class FakeProviderClient:
    """Stands in for Google: records calls, returns canned attributes."""

    def __init__(
        self,
        name: str = "google",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.name = name
        self.attributes = dict(attributes if attributes is not None else GOOGLE_ATTRIBUTES)
        self.calls: list[tuple[str, str]] = []
        self.error: Exception | None = None
        self.closed = False

    def build_authorization_url(self, code_challenge: str, state: str) -> str:
        return (
            f"https://provider.example/{self.name}/auth"
            f"?code_challenge={code_challenge}&state={state}"
        )

    def fetch_user_attributes(self, code: str, code_verifier: str) -> dict[str, Any]:
        self.calls.append((code, code_verifier))
        if self.error is not None:
            raise self.error
        return dict(self.attributes)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_auth_state() -> None:
    """Clear the in-memory user and session stores between tests."""
    dependencies.user_repo.clear()
    dependencies.session_store.clear()


@pytest.fixture(autouse=True)
def reset_dependency_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def fake_google() -> FakeProviderClient:
    return FakeProviderClient()


@pytest.fixture
def coordinator(fake_google: FakeProviderClient) -> OAuthFlowCoordinator:
    """App-wired coordinator whose only provider is the fake Google client."""
    coord = OAuthFlowCoordinator(
        dependencies.session_store,
        dependencies.auth_service,
        dependencies.token_service,
        {"google": fake_google},
    )
    app.dependency_overrides[dependencies.get_flow_coordinator] = lambda: coord
    return coord


def seed_user(
    email: str = "tee@example.com",
    username: str = "tee",
    password: str = "correct-horse",
    *,
    is_active: bool = True,
) -> User:
    user = User.new(email=email, username=username, password_hash=hash_password(password))
    dependencies.user_repo.save(user)
    if not is_active:
        dependencies.user_repo.set_active(user.id, False)
    return dependencies.user_repo.find_by_email(email)  # type: ignore[return-value]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
