"""Normalize a provider's user attributes into one identity shape.

Each supported provider maps to an extraction function; anything not in
``_EXTRACTORS`` is rejected with UnsupportedProviderError.  Adding a
provider means adding one function and one registry entry.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from movie_auth.core.errors import UnsupportedProviderError


@dataclass(frozen=True, slots=True)
class ProviderIdentity:
    provider: str
    provider_id: str | None
    email: str | None
    first_name: str | None
    last_name: str | None


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _from_google(attrs: Mapping[str, Any]) -> ProviderIdentity:
    return ProviderIdentity(
        provider="google",
        provider_id=_str_or_none(attrs.get("sub")),
        email=_str_or_none(attrs.get("email")),
        first_name=_str_or_none(attrs.get("given_name")),
        last_name=_str_or_none(attrs.get("family_name")),
    )


def _from_facebook(attrs: Mapping[str, Any]) -> ProviderIdentity:
    first = _str_or_none(attrs.get("first_name"))
    last = _str_or_none(attrs.get("last_name"))
    if first is None and last is None:
        # Graph API returns only "name" unless first_name/last_name are requested.
        full = _str_or_none(attrs.get("name"))
        if full:
            first, _, rest = full.partition(" ")
            last = rest or None
    return ProviderIdentity(
        provider="facebook",
        provider_id=_str_or_none(attrs.get("id")),
        email=_str_or_none(attrs.get("email")),
        first_name=first,
        last_name=last,
    )


def _from_apple(attrs: Mapping[str, Any]) -> ProviderIdentity:
    # Apple nests the name, and only sends it on the very first login.
    name = attrs.get("name")
    if not isinstance(name, Mapping):
        name = {}
    return ProviderIdentity(
        provider="apple",
        provider_id=_str_or_none(attrs.get("sub")),
        email=_str_or_none(attrs.get("email")),
        first_name=_str_or_none(name.get("firstName")),
        last_name=_str_or_none(name.get("lastName")),
    )


_EXTRACTORS: dict[str, Callable[[Mapping[str, Any]], ProviderIdentity]] = {
    "google": _from_google,
    "facebook": _from_facebook,
    "apple": _from_apple,
}

SUPPORTED_PROVIDERS = frozenset(_EXTRACTORS)


def normalize_provider_name(provider_name: str) -> str:
    """Lower-cased registry key for *provider_name*; raises if unsupported."""
    key = (provider_name or "").strip().lower()
    if key not in _EXTRACTORS:
        raise UnsupportedProviderError(provider_name)
    return key


def extract_identity(
    provider_name: str, attributes: Mapping[str, Any]
) -> ProviderIdentity:
    key = normalize_provider_name(provider_name)
    return _EXTRACTORS[key](attributes)
