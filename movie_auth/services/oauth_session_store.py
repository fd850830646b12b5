"""In-memory broker for in-flight OAuth2 logins.

A session moves through

    pending ──(callback ok)──> authenticated ──(exchange)──> consumed
       └──────────────(age > timeout)──────────> expired (reaped)

and is keyed by an unguessable id that the browser carries in the
``oauth2-session`` cookie.  The id is the only thing that ever crosses
a client-visible channel; the PKCE verifier and the minted token stay
here until the one exchange call collects them.

Concurrency: request handlers (threadpool workers under FastAPI's sync
routes) and the reaper thread all go through one ``threading.Lock``.
``exchange_session`` pops the record under that lock before looking at
it, so of two racing exchanges for one id exactly one sees the record.
A record that fails the expiry/authenticated check on exchange is
still gone: the exchange is one-shot and fails closed.

The store is an explicit object with a lifecycle.  The FastAPI lifespan
calls ``start()`` (reaper thread) and ``stop()``; tests that never start
it can call ``purge_expired()`` directly.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import replace

from movie_auth.core.logging import redact_id
from movie_auth.core.metrics import OAUTH_SESSIONS, OAUTH_SESSIONS_REAPED
from movie_auth.models.oauth_session import OAuthSession

logger = logging.getLogger(__name__)

SESSION_TIMEOUT_SEC = 10 * 60
REAPER_INTERVAL_SEC = 5 * 60


class OAuthSessionStore:
    def __init__(
        self,
        *,
        session_timeout: float = SESSION_TIMEOUT_SEC,
        reaper_interval: float = REAPER_INTERVAL_SEC,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if session_timeout <= 0 or reaper_interval <= 0:
            raise ValueError("session_timeout and reaper_interval must be positive")
        self.session_timeout = session_timeout
        self.reaper_interval = reaper_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, OAuthSession] = {}
        self._stop_event = threading.Event()
        self._reaper: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    def create_session(self, state: str, code_verifier: str, provider: str) -> str:
        session_id = str(uuid.uuid4())
        record = OAuthSession(
            session_id=session_id,
            state=state,
            code_verifier=code_verifier,
            provider=provider,
            created_at=self._clock(),
        )
        with self._lock:
            self._sessions[session_id] = record
            OAUTH_SESSIONS.set(len(self._sessions))
        logger.debug(
            "OAuth2 session created  session=%s provider=%s",
            redact_id(session_id),
            provider,
        )
        return session_id

    def get_session(self, session_id: str) -> OAuthSession | None:
        """Live session for *session_id*, or None if unknown or expired.

        Read-only: an expired record is left for the reaper.
        """
        with self._lock:
            record = self._sessions.get(session_id)
        if record is None or record.is_expired(self._clock(), self.session_timeout):
            return None
        return record

    def store_authentication_result(
        self,
        session_id: str,
        user_id: str,
        token: str,
        user_summary: str,
    ) -> None:
        """Attach the callback's result, once.

        A no-op for unknown or expired ids, and for a session that
        already carries a result: the first result is the one exchanged.
        """
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None or record.is_expired(self._clock(), self.session_timeout):
                logger.debug(
                    "Ignoring authentication result for missing session=%s",
                    redact_id(session_id),
                )
                return
            if record.authenticated:
                logger.warning(
                    "Ignoring second authentication result for session=%s",
                    redact_id(session_id),
                )
                return
            self._sessions[session_id] = replace(
                record,
                user_id=user_id,
                token=token,
                user_summary=user_summary,
                authenticated=True,
            )

    def exchange_session(self, session_id: str) -> OAuthSession | None:
        """Remove the session and return it if it was live and authenticated.

        Whatever the outcome, the id cannot be exchanged again.
        """
        with self._lock:
            record = self._sessions.pop(session_id, None)
            OAUTH_SESSIONS.set(len(self._sessions))
        if record is None:
            return None
        if record.is_expired(self._clock(), self.session_timeout):
            return None
        if not record.authenticated:
            return None
        return record

    def purge_expired(self) -> int:
        """Drop every session older than the timeout.  Returns how many went."""
        now = self._clock()
        with self._lock:
            expired = [
                sid
                for sid, record in self._sessions.items()
                if record.is_expired(now, self.session_timeout)
            ]
            for sid in expired:
                del self._sessions[sid]
            OAUTH_SESSIONS.set(len(self._sessions))
        if expired:
            OAUTH_SESSIONS_REAPED.inc(len(expired))
            logger.info("Reaped %d expired OAuth2 session(s)", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
            OAUTH_SESSIONS.set(0)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # ------------------------------------------------------------------
    # Reaper lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._reaper is not None and self._reaper.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._reaper = threading.Thread(
            target=self._reap_forever,
            name="oauth-session-reaper",
            daemon=True,
        )
        self._reaper.start()
        logger.info(
            "OAuth2 session reaper started  interval=%ss timeout=%ss",
            self.reaper_interval,
            self.session_timeout,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        if self._reaper is None:
            return
        self._stop_event.set()
        self._reaper.join(timeout)
        self._reaper = None
        logger.info("OAuth2 session reaper stopped")

    def _reap_forever(self) -> None:
        # Event.wait doubles as the sleep, so stop() wakes the thread at once.
        while not self._stop_event.wait(self.reaper_interval):
            try:
                self.purge_expired()
            except Exception:
                # Keep the thread alive; the next tick retries.
                logger.exception("OAuth2 session reaper pass failed")

    def __enter__(self) -> OAuthSessionStore:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
