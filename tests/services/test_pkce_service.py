from __future__ import annotations

import base64
import hashlib
import re

from movie_auth.services import pkce_service

_URL_SAFE = re.compile(r"^[A-Za-z0-9_-]+$")


def _expected_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def test_verifier_is_43_url_safe_chars_without_padding() -> None:
    verifier = pkce_service.generate_code_verifier()
    assert len(verifier) == 43
    assert _URL_SAFE.match(verifier)
    assert "=" not in verifier


def test_verifier_decodes_to_32_random_bytes() -> None:
    verifier = pkce_service.generate_code_verifier()
    raw = base64.urlsafe_b64decode(verifier + "=")
    assert len(raw) == 32


def test_state_is_16_bytes_url_safe() -> None:
    state = pkce_service.generate_state()
    assert len(state) == 22
    assert _URL_SAFE.match(state)
    assert len(base64.urlsafe_b64decode(state + "==")) == 16


def test_challenge_is_sha256_of_verifier() -> None:
    verifier = pkce_service.generate_code_verifier()
    assert pkce_service.compute_code_challenge(verifier) == _expected_challenge(verifier)


def test_challenge_matches_rfc7636_example() -> None:
    # Appendix B of RFC 7636
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert (
        pkce_service.compute_code_challenge(verifier)
        == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
    )


def test_generated_params_are_consistent() -> None:
    params = pkce_service.generate_pkce_params()
    assert params.code_challenge == _expected_challenge(params.code_verifier)
    assert params.state != params.code_verifier


def test_values_are_not_reused_across_calls() -> None:
    verifiers = {pkce_service.generate_code_verifier() for _ in range(50)}
    states = {pkce_service.generate_state() for _ in range(50)}
    assert len(verifiers) == 50
    assert len(states) == 50


def test_verify_code_challenge() -> None:
    params = pkce_service.generate_pkce_params()
    assert pkce_service.verify_code_challenge(params.code_verifier, params.code_challenge)
    other = pkce_service.generate_code_verifier()
    assert not pkce_service.verify_code_challenge(other, params.code_challenge)


def test_crypto_capability_check_passes() -> None:
    pkce_service.check_crypto_capabilities()
