from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from movie_auth.core.errors import (
    AccountInactiveError,
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    MissingEmailError,
)
from movie_auth.core.metrics import AUTH_ATTEMPTS
from movie_auth.models.user import User
from movie_auth.repos.user_repo import UserRepo
from movie_auth.services.provider_identity import ProviderIdentity, extract_identity
from movie_auth.services.token_service import TokenService

logger = logging.getLogger(__name__)

# Argon2 hash strings encode parameters + salt, so parameter changes are
# detectable per hash (see check_needs_rehash in login_with_password).
_ph = PasswordHasher()

# Verified against when the email is unknown, so both failure branches of
# login do the same argon2 work.
_DUMMY_HASH = _ph.hash(secrets.token_urlsafe(16))


# Provider logins retry the read-merge-save cycle when a concurrent login
# for the same email (or the same username base) saved first.
_PROVIDER_SAVE_ATTEMPTS = 3


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _ph.hash(plain_password)


# verify_password() must catch Argon2 exceptions and return False
def verify_password(plain_password: str, password_hash: str | None) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def hash_unusable_password() -> str:
    """Hash of a random secret nobody knows, for provider-only accounts."""
    return _ph.hash(secrets.token_urlsafe(32))


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True, slots=True)
class AuthResult:
    token: str
    user: User


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AuthenticationService:
    """Resolves local users from passwords or provider identities and mints tokens."""

    def __init__(
        self,
        user_repo: UserRepo,
        token_service: TokenService,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repo = user_repo
        self._tokens = token_service
        self._clock = clock

    # ------------------------------------------------------------------
    # Password path
    # ------------------------------------------------------------------

    def register_with_password(
        self,
        email: str,
        username: str,
        password: str,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> AuthResult:
        email = normalize_email(email)
        username = username.strip()

        # Both uniqueness checks run before anything is written.
        if self._repo.exists_by_email(email):
            AUTH_ATTEMPTS.labels(method="register", result="duplicate_email").inc()
            raise DuplicateEmailError()
        if self._repo.exists_by_username(username):
            AUTH_ATTEMPTS.labels(method="register", result="duplicate_username").inc()
            raise DuplicateUsernameError()

        user = User.new(
            email=email,
            username=username,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        )
        try:
            user = self._repo.save(user)
        except ValueError:
            # Lost a race with a concurrent registration for the same email/username.
            if self._repo.exists_by_email(email):
                raise DuplicateEmailError() from None
            raise DuplicateUsernameError() from None

        AUTH_ATTEMPTS.labels(method="register", result="success").inc()
        logger.info("User registered  user_id=%s", user.id)
        return AuthResult(token=self._tokens.issue(user), user=user)

    def login_with_password(self, email: str, password: str) -> AuthResult:
        """Check order: lookup -> active flag -> password."""
        user = self._repo.find_by_email(normalize_email(email))
        if user is None:
            verify_password(password, _DUMMY_HASH)
            AUTH_ATTEMPTS.labels(method="password", result="invalid").inc()
            raise InvalidCredentialsError()

        if not user.is_active:
            AUTH_ATTEMPTS.labels(method="password", result="inactive").inc()
            logger.warning("Login refused for inactive account  user_id=%s", user.id)
            raise AccountInactiveError()

        if not verify_password(password, user.password_hash):
            AUTH_ATTEMPTS.labels(method="password", result="invalid").inc()
            raise InvalidCredentialsError()

        updates: dict[str, Any] = {"last_login": self._clock()}
        try:
            if _ph.check_needs_rehash(user.password_hash):
                updates["password_hash"] = _ph.hash(password)
                logger.info("Rehashed password for user=%s", user.id)
        except InvalidHash:
            # verify_password already accepted it; leave the stored hash alone.
            pass
        user = self._repo.save(replace(user, **updates))

        AUTH_ATTEMPTS.labels(method="password", result="success").inc()
        return AuthResult(token=self._tokens.issue(user), user=user)

    # ------------------------------------------------------------------
    # Third-party provider path
    # ------------------------------------------------------------------

    def resolve_or_create_from_provider(
        self, provider_name: str, attributes: Mapping[str, Any]
    ) -> User:
        identity = extract_identity(provider_name, attributes)
        if not identity.email:
            AUTH_ATTEMPTS.labels(method="oauth2", result="missing_email").inc()
            raise MissingEmailError()

        email = normalize_email(identity.email)
        for attempt in range(1, _PROVIDER_SAVE_ATTEMPTS + 1):
            existing = self._repo.find_by_email(email)
            if existing is not None:
                user = self._merge_provider_identity(existing, identity)
            else:
                user = self._new_user_from_identity(email, identity)
            try:
                user = self._repo.save(replace(user, last_login=self._clock()))
                break
            except ValueError:
                # A concurrent login took the email or the username first;
                # re-read and go again.
                logger.info(
                    "Provider login lost a save race  provider=%s attempt=%d",
                    identity.provider,
                    attempt,
                )
        else:
            AUTH_ATTEMPTS.labels(method="oauth2", result="conflict").inc()
            if self._repo.exists_by_email(email):
                raise DuplicateEmailError()
            raise DuplicateUsernameError()

        AUTH_ATTEMPTS.labels(method="oauth2", result="success").inc()
        logger.info(
            "Provider login resolved  provider=%s user_id=%s created=%s",
            identity.provider,
            user.id,
            existing is None,
        )
        return user

    def _merge_provider_identity(self, user: User, identity: ProviderIdentity) -> User:
        updates: dict[str, Any] = {}
        # First provider to link this account keeps it.
        if user.provider is None:
            updates["provider"] = identity.provider
            updates["provider_id"] = identity.provider_id
        if identity.first_name:
            updates["first_name"] = identity.first_name
        if identity.last_name:
            updates["last_name"] = identity.last_name
        if updates:
            updates["updated_at"] = self._clock()
            user = replace(user, **updates)
        return user

    def _new_user_from_identity(self, email: str, identity: ProviderIdentity) -> User:
        return User.new(
            email=email,
            username=self._unique_username_from_email(email),
            password_hash=hash_unusable_password(),
            first_name=identity.first_name,
            last_name=identity.last_name,
            provider=identity.provider,
            provider_id=identity.provider_id,
        )

    def _unique_username_from_email(self, email: str) -> str:
        base = email.split("@", 1)[0] or "user"
        username = base
        counter = 1
        while self._repo.exists_by_username(username):
            username = f"{base}{counter}"
            counter += 1
        return username
