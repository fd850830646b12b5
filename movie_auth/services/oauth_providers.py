"""Third-party OAuth2 provider clients.

A provider client knows two things: how to build the authorization URL
the browser is sent to, and how to turn the authorization code from
the callback (plus our PKCE verifier) into the provider's user
attributes.  The flow coordinator only talks to the Protocol, so tests
plug in a fake and never touch the network.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import urlencode

import httpx

from movie_auth.core.config import Settings
from movie_auth.core.errors import ProviderExchangeError

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/login/oauth2/code/{provider}"


class OAuthProviderClient(Protocol):
    name: str

    def build_authorization_url(self, code_challenge: str, state: str) -> str: ...

    def fetch_user_attributes(self, code: str, code_verifier: str) -> dict[str, Any]: ...

    def close(self) -> None: ...


def callback_url(api_base_url: str, provider: str) -> str:
    return api_base_url.rstrip("/") + CALLBACK_PATH.format(provider=provider)


class GoogleOAuthClient:
    """Google authorization-code + PKCE (S256) client."""

    name = "google"

    AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
    USERINFO_ENDPOINT = "https://openidconnect.googleapis.com/v1/userinfo"
    SCOPE = "openid email profile"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str | None,
        redirect_uri: str,
        http_client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._http = http_client or httpx.Client(timeout=timeout)

    def build_authorization_url(self, code_challenge: str, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.SCOPE,
            "response_type": "code",
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.AUTHORIZATION_ENDPOINT}?{urlencode(params)}"

    def fetch_user_attributes(self, code: str, code_verifier: str) -> dict[str, Any]:
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": code_verifier,
        }
        if self.client_secret:
            form["client_secret"] = self.client_secret

        try:
            token_resp = self._http.post(self.TOKEN_ENDPOINT, data=form)
            token_resp.raise_for_status()
            token_body = token_resp.json()
            if not isinstance(token_body, dict):
                raise ProviderExchangeError("Provider returned a malformed token response")
            access_token = token_body.get("access_token")
            if not access_token:
                raise ProviderExchangeError("Provider returned no access token")

            info_resp = self._http.get(
                self.USERINFO_ENDPOINT,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            info_resp.raise_for_status()
            attributes = info_resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Provider call failed  provider=%s status=%d url=%s",
                self.name,
                e.response.status_code,
                e.request.url.copy_with(query=None),
            )
            raise ProviderExchangeError() from e
        except (httpx.HTTPError, ValueError) as e:
            # ValueError: response body was not JSON.
            logger.warning(
                "Provider call failed  provider=%s error=%s",
                self.name,
                type(e).__name__,
            )
            raise ProviderExchangeError() from e

        if not isinstance(attributes, dict):
            raise ProviderExchangeError("Provider returned malformed user info")
        return attributes

    def close(self) -> None:
        self._http.close()


def build_provider_clients(settings: Settings) -> dict[str, OAuthProviderClient]:
    """Provider clients for every provider with credentials configured."""
    clients: dict[str, OAuthProviderClient] = {}
    if settings.google_client_id:
        clients["google"] = GoogleOAuthClient(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=callback_url(settings.api_base_url, "google"),
        )
    else:
        logger.info("GOOGLE_CLIENT_ID not set; Google login disabled")
    return clients
