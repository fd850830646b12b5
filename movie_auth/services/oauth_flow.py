from __future__ import annotations

import hmac
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from movie_auth.core.errors import (
    InvalidOrExpiredSessionError,
    ProviderExchangeError,
    SessionNotFoundError,
    StateMismatchError,
    UnsupportedProviderError,
)
from movie_auth.core.logging import redact_id
from movie_auth.core.metrics import CSRF_STATE_MISMATCH, OAUTH_FLOW_EVENTS
from movie_auth.models.user import User
from movie_auth.services import pkce_service
from movie_auth.services.auth_service import AuthenticationService
from movie_auth.services.oauth_providers import OAuthProviderClient
from movie_auth.services.oauth_session_store import OAuthSessionStore
from movie_auth.services.token_service import TokenService

# ---------------------------------------------------------------------------
# OAuth2 login via a third-party provider, authorization code + PKCE
#
#   initiate(provider)  : PKCE params, broker session, authorization URL
#   handle_callback(...): verify session + state, resolve user, mint token,
#                          park the result in the broker session
#   exchange(session_id): one-shot hand-over of token + user summary
#
# The token never leaves the server until exchange(); the browser only
# ever holds the session id.
# ---------------------------------------------------------------------------

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthorizationRequest:
    session_id: str
    authorization_url: str
    state: str


@dataclass(frozen=True, slots=True)
class ExchangeResult:
    token: str
    user: dict[str, Any]


class OAuthFlowCoordinator:
    def __init__(
        self,
        session_store: OAuthSessionStore,
        auth_service: AuthenticationService,
        token_service: TokenService,
        providers: Mapping[str, OAuthProviderClient],
    ) -> None:
        self._sessions = session_store
        self._auth = auth_service
        self._tokens = token_service
        self._providers = {name.lower(): client for name, client in providers.items()}

    @property
    def providers(self) -> frozenset[str]:
        return frozenset(self._providers)

    def close(self) -> None:
        """Release the provider clients' HTTP connections."""
        for client in self._providers.values():
            client.close()

    def _provider(self, provider: str) -> tuple[str, OAuthProviderClient]:
        key = (provider or "").strip().lower()
        client = self._providers.get(key)
        if client is None:
            raise UnsupportedProviderError(provider)
        return key, client

    # ========================== initiate ==========================

    def initiate(self, provider: str) -> AuthorizationRequest:
        try:
            key, client = self._provider(provider)
        except UnsupportedProviderError:
            OAUTH_FLOW_EVENTS.labels(
                step="initiate", result="unsupported_provider"
            ).inc()
            logger.warning(
                "OAUTH2 FLOW [initiate] FAIL: unsupported provider=%r", provider
            )
            raise

        params = pkce_service.generate_pkce_params()
        session_id = self._sessions.create_session(
            params.state, params.code_verifier, key
        )
        url = client.build_authorization_url(params.code_challenge, params.state)

        OAUTH_FLOW_EVENTS.labels(step="initiate", result="success").inc()
        logger.info(
            "OAUTH2 FLOW [initiate] session created, redirecting to provider  "
            "provider=%s session=%s",
            key,
            redact_id(session_id),
        )
        return AuthorizationRequest(
            session_id=session_id, authorization_url=url, state=params.state
        )

    # ========================== callback ==========================

    def handle_callback(
        self,
        session_id: str | None,
        state: str | None,
        code: str | None,
        *,
        provider: str | None = None,
        provider_error: str | None = None,
    ) -> User:
        """Complete the provider round trip for *session_id*.

        Session and state are verified before anything from the callback
        is trusted, including a provider-reported error.
        """
        # --- Session lookup ------------------------------------------------
        # A callback without a session id is rejected; there is no
        # sessionless fallback.
        session = self._sessions.get_session(session_id) if session_id else None
        if session is None:
            OAUTH_FLOW_EVENTS.labels(step="callback", result="session_not_found").inc()
            logger.warning(
                "OAUTH2 FLOW [callback] FAIL: session missing or expired  session=%s",
                redact_id(session_id),
            )
            raise SessionNotFoundError()
        logger.info("OAUTH2 FLOW [callback] step 1: session found  ✓")

        # --- CSRF state check ----------------------------------------------
        if not state or not hmac.compare_digest(
            session.state.encode("utf-8"), state.encode("utf-8")
        ):
            OAUTH_FLOW_EVENTS.labels(step="callback", result="state_mismatch").inc()
            CSRF_STATE_MISMATCH.labels(provider=session.provider).inc()
            logger.warning(
                "OAUTH2 FLOW [callback] FAIL: state mismatch, possible CSRF  "
                "provider=%s session=%s",
                session.provider,
                redact_id(session_id),
                extra={
                    "event": "csrf_state_mismatch",
                    "provider": session.provider,
                    "session": redact_id(session_id),
                },
            )
            raise StateMismatchError()
        logger.info("OAUTH2 FLOW [callback] step 2: state matches  ✓")

        if provider is not None and provider.strip().lower() != session.provider:
            OAUTH_FLOW_EVENTS.labels(step="callback", result="provider_mismatch").inc()
            logger.warning(
                "OAUTH2 FLOW [callback] FAIL: callback for provider=%s, session "
                "started for provider=%s",
                provider,
                session.provider,
            )
            raise SessionNotFoundError("OAuth2 session belongs to another provider")

        # A session completes once; a replayed callback must not swap the
        # identity the browser is about to exchange.
        if session.authenticated:
            OAUTH_FLOW_EVENTS.labels(step="callback", result="already_completed").inc()
            logger.warning(
                "OAUTH2 FLOW [callback] FAIL: session already completed  session=%s",
                redact_id(session_id),
            )
            raise SessionNotFoundError("OAuth2 session already completed")

        if provider_error:
            OAUTH_FLOW_EVENTS.labels(step="callback", result="provider_error").inc()
            logger.warning(
                "OAUTH2 FLOW [callback] FAIL: provider reported error=%s",
                provider_error,
            )
            raise ProviderExchangeError(f"Provider returned error: {provider_error}")

        if not code:
            OAUTH_FLOW_EVENTS.labels(step="callback", result="provider_error").inc()
            raise ProviderExchangeError("Provider returned no authorization code")

        # --- Provider identity ---------------------------------------------
        # NOTE: never log the code or the verifier.
        _, client = self._provider(session.provider)
        try:
            attributes = client.fetch_user_attributes(code, session.code_verifier)
        except ProviderExchangeError:
            OAUTH_FLOW_EVENTS.labels(step="callback", result="provider_error").inc()
            raise
        logger.info("OAUTH2 FLOW [callback] step 3: provider identity obtained  ✓")

        # --- Local user + token --------------------------------------------
        user = self._auth.resolve_or_create_from_provider(session.provider, attributes)
        token = self._tokens.issue(user)
        self._sessions.store_authentication_result(
            session.session_id,
            str(user.id),
            token,
            json.dumps(user.summary()),
        )

        OAUTH_FLOW_EVENTS.labels(step="callback", result="success").inc()
        logger.info(
            "OAUTH2 FLOW [callback] step 4: result stored in session  "
            "user_id=%s session=%s  ✓",
            user.id,
            redact_id(session.session_id),
        )
        return user

    # ========================== exchange ==========================

    def exchange(self, session_id: str | None) -> ExchangeResult:
        session = self._sessions.exchange_session(session_id) if session_id else None
        if session is None or session.token is None:
            OAUTH_FLOW_EVENTS.labels(step="exchange", result="invalid_session").inc()
            logger.warning(
                "OAUTH2 FLOW [exchange] FAIL: invalid, expired or already used "
                "session=%s",
                redact_id(session_id),
            )
            raise InvalidOrExpiredSessionError()

        user = json.loads(session.user_summary) if session.user_summary else {}
        OAUTH_FLOW_EVENTS.labels(step="exchange", result="success").inc()
        logger.info(
            "OAUTH2 FLOW [exchange] session consumed  user_id=%s  ✓",
            session.user_id,
        )
        return ExchangeResult(token=session.token, user=user)
