"""Error taxonomy for the auth subsystem.

Every error here is a recoverable, user-facing condition.  Routes turn
them into structured JSON payloads using ``code`` and ``status_code``;
nothing in this module should ever crash the process.

Token problems are mostly reported as booleans (``TokenService.validate``).
``TokenInvalidError`` / ``TokenExpiredError`` exist for the claim
projections, which must fail loudly on a token that did not validate.
"""

from __future__ import annotations


class AuthError(Exception):
    code = "auth_error"
    status_code = 400
    default_message = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_payload(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


# --- password path ----------------------------------------------------------


class DuplicateEmailError(AuthError):
    code = "duplicate_email"
    status_code = 409
    default_message = "Email already exists"


class DuplicateUsernameError(AuthError):
    code = "duplicate_username"
    status_code = 409
    default_message = "Username already exists"


class InvalidCredentialsError(AuthError):
    # Same message for "no such email" and "wrong password" (no enumeration).
    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid credentials"


class AccountInactiveError(AuthError):
    code = "account_inactive"
    status_code = 403
    default_message = "Account is inactive"


# --- provider identity path -------------------------------------------------


class UnsupportedProviderError(AuthError):
    code = "unsupported_provider"
    status_code = 400
    default_message = "OAuth2 provider is not supported"

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Login with {provider!r} is not supported")


class MissingEmailError(AuthError):
    code = "missing_email"
    status_code = 400
    default_message = "Email not found from OAuth2 provider"


class ProviderExchangeError(AuthError):
    code = "provider_exchange_failed"
    status_code = 502
    default_message = "Could not obtain identity from OAuth2 provider"


# --- session / flow path ----------------------------------------------------


class SessionNotFoundError(AuthError):
    code = "session_not_found"
    status_code = 400
    default_message = "Invalid or expired OAuth2 session"


class StateMismatchError(AuthError):
    # Potential CSRF. Logged and counted separately; never folded into a
    # generic failure.
    code = "state_mismatch"
    status_code = 400
    default_message = "State parameter mismatch"


class InvalidOrExpiredSessionError(AuthError):
    code = "invalid_or_expired_session"
    status_code = 400
    default_message = "Invalid or expired session"


# --- token path -------------------------------------------------------------


class TokenInvalidError(AuthError):
    code = "token_invalid"
    status_code = 401
    default_message = "Invalid token"


class TokenExpiredError(TokenInvalidError):
    code = "token_expired"
    status_code = 401
    default_message = "Token expired"
