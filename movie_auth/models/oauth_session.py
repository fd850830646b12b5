from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

SessionStatus = Literal["pending", "authenticated"]


@dataclass(frozen=True, slots=True)
class OAuthSession:
    """One in-flight OAuth2 login, keyed by an opaque session id.

    The first five fields are fixed at flow initiation.  ``user_id``,
    ``token`` and ``user_summary`` are filled exactly once, by the provider
    callback, which also flips ``authenticated``.  The store hands out
    these frozen snapshots and swaps in a replaced copy on update.
    """

    session_id: str
    state: str
    code_verifier: str
    provider: str
    created_at: float  # epoch seconds
    user_id: str | None = None
    token: str | None = None
    user_summary: str | None = None  # JSON: {"id", "email", "username"}
    authenticated: bool = False

    def is_expired(self, now: float, timeout_sec: float) -> bool:
        return now - self.created_at > timeout_sec

    @property
    def status(self) -> SessionStatus:
        return "authenticated" if self.authenticated else "pending"
