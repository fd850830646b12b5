from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    username: str
    password_hash: str
    first_name: str | None = None
    last_name: str | None = None
    is_active: bool = True
    # OAuth2 linkage: first provider to authenticate this email wins.
    provider: str | None = None
    provider_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login: datetime | None = None

    @staticmethod
    def new(
        *,
        email: str,
        username: str,
        password_hash: str,
        first_name: str | None = None,
        last_name: str | None = None,
        provider: str | None = None,
        provider_id: str | None = None,
    ) -> User:
        now = datetime.now(UTC)
        return User(
            id=uuid4(),
            email=email,
            username=username,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            is_active=True,
            provider=provider,
            provider_id=provider_id,
            created_at=now,
            updated_at=now,
        )

    def summary(self) -> dict[str, str]:
        """Minimal user data that is safe to hand to a browser."""
        return {"id": str(self.id), "email": self.email, "username": self.username}
