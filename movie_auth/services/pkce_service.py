from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from dataclasses import dataclass

# PKCE material for the /oauth2/authorize/{provider} flow (see oauth_flow.py).
#
# The verifier stays on the server inside the OAuth2 broker session; only
# the S256 challenge and the state travel to the provider in the
# authorization URL.  The state comes back on the callback and binds it
# to the browser that started the flow (CSRF).

VERIFIER_BYTES = 32  # -> 43 chars, the RFC 7636 minimum
STATE_BYTES = 16  # -> 22 chars, 128 bits


@dataclass(frozen=True, slots=True)
class PkceParams:
    code_verifier: str
    code_challenge: str
    state: str


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


# code verifier: random string of 43–128 chars from the unreserved set
def generate_code_verifier() -> str:
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


# code challenge from code verifier using the S256 method
def compute_code_challenge(code_verifier: str) -> str:
    sha256_digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return _b64url(sha256_digest)


def generate_state() -> str:
    return _b64url(secrets.token_bytes(STATE_BYTES))


def generate_pkce_params() -> PkceParams:
    """Fresh verifier, its challenge, and an independent state value."""
    code_verifier = generate_code_verifier()
    return PkceParams(
        code_verifier=code_verifier,
        code_challenge=compute_code_challenge(code_verifier),
        state=generate_state(),
    )


def verify_code_challenge(code_verifier: str, expected_challenge: str) -> bool:
    """Compare the challenge derived from *code_verifier* against the stored one.

    Constant-time, so response timing says nothing about how much of a
    guessed challenge matched.
    """
    actual_challenge = compute_code_challenge(code_verifier)
    return hmac.compare_digest(actual_challenge, expected_challenge)


def check_crypto_capabilities() -> None:
    """Startup check that SHA-256 and the OS CSPRNG are usable.

    Called once when the app starts.  Per-call generation does not guard
    against these failures; a platform without them cannot run the service.
    """
    try:
        hashlib.sha256(b"capability-check").digest()
        sample = secrets.token_bytes(VERIFIER_BYTES)
    except Exception as exc:  # pragma: no cover - platform specific
        raise RuntimeError("secure hash / random primitives unavailable") from exc
    if len(sample) != VERIFIER_BYTES:  # pragma: no cover
        raise RuntimeError("CSPRNG returned a short read")
