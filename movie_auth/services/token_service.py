"""Bearer token issuance and validation (HS256 JWT).

One ``TokenService`` instance is built from Settings and shared by the
password endpoints, the OAuth2 callback (issuance) and ``require_user``
(validation), so they all agree on key and claims.

Claims: ``sub`` (email), ``user_id``, ``email``, ``username``, ``iat``, ``exp``.

Validation contract: ``validate`` is False for a bad signature, a
malformed token, ``alg: none`` AND for an expired token.  ``is_expired``
is the narrower question, answered on a signature-checked token.  No
code path accepts an expired token.

Rotating the secret invalidates every token issued under the old one;
there is no key id / multi-key support.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from movie_auth.core.errors import TokenExpiredError, TokenInvalidError
from movie_auth.core.metrics import TOKEN_VALIDATIONS
from movie_auth.models.user import User

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
MIN_SECRET_BYTES = 32
_REQUIRED_CLAIMS = ["sub", "exp", "iat", "user_id"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenService:
    def __init__(
        self,
        secret: str,
        expiration_hours: int = 1,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret or len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(
                f"token secret must be at least {MIN_SECRET_BYTES} bytes for {ALGORITHM}"
            )
        if expiration_hours < 1:
            raise ValueError("expiration_hours must be >= 1")
        self._key = secret.encode("utf-8")
        self._ttl = timedelta(hours=expiration_hours)
        self._clock = clock

    def issue(self, user: User) -> str:
        """Sign a token for *user*; ``sub`` is the user's email."""
        now = self._clock()
        payload = {
            "sub": user.email,
            "user_id": str(user.id),
            "email": user.email,
            "username": user.username,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(payload, self._key, algorithm=ALGORITHM)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _decode_signed(self, token: str) -> dict[str, Any]:
        # Expiry is checked against self._clock by the callers, so issuance
        # and validation share one notion of "now".
        return jwt.decode(
            token,
            self._key,
            algorithms=[ALGORITHM],
            options={"require": _REQUIRED_CLAIMS, "verify_exp": False},
        )

    def decode(self, token: str | None) -> dict[str, Any]:
        """Verified claims of *token*.

        Raises TokenExpiredError / TokenInvalidError.
        """
        if not token:
            raise TokenInvalidError("Token is empty")
        try:
            claims = self._decode_signed(token)
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid token: {e}") from None
        if self._is_past(claims["exp"]):
            raise TokenExpiredError()
        return claims

    def validate(self, token: str | None) -> bool:
        """True only for a well-formed, correctly signed, unexpired token.

        Never raises.
        """
        try:
            self.decode(token)
        except TokenExpiredError:
            TOKEN_VALIDATIONS.labels(result="expired").inc()
            logger.debug("Token rejected: expired")
            return False
        except TokenInvalidError as e:
            TOKEN_VALIDATIONS.labels(result="invalid").inc()
            logger.debug("Token rejected: %s", e)
            return False
        TOKEN_VALIDATIONS.labels(result="valid").inc()
        return True

    def is_expired(self, token: str | None) -> bool:
        """True when now >= ``exp``.  Unparseable or forged tokens count as expired."""
        if not token:
            return True
        try:
            claims = self._decode_signed(token)
        except jwt.InvalidTokenError:
            return True
        return self._is_past(claims["exp"])

    def extract_subject(self, token: str) -> str:
        """``sub`` claim (the email).  Raises TokenInvalidError if *token* does not validate."""
        return str(self.decode(token)["sub"])

    def extract_user_id(self, token: str) -> str:
        """``user_id`` claim.  Raises TokenInvalidError if *token* does not validate."""
        return str(self.decode(token)["user_id"])

    def _is_past(self, exp: Any) -> bool:
        try:
            expires_at = datetime.fromtimestamp(int(exp), tz=UTC)
        except (TypeError, ValueError, OverflowError):
            return True
        return self._clock() >= expires_at
