from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from movie_auth.models.user import User


class UserRepo(Protocol):
    def find_by_id(self, user_id: UUID) -> User | None: ...
    def find_by_email(self, email: str) -> User | None: ...
    def find_by_username(self, username: str) -> User | None: ...
    def exists_by_email(self, email: str) -> bool: ...
    def exists_by_username(self, username: str) -> bool: ...
    def save(self, user: User) -> User: ...
    def set_active(self, user_id: UUID, is_active: bool) -> None: ...


class InMemoryUserRepo:
    """Dict-backed user store.

    ``save`` is an upsert keyed by ``user.id``.  Email and username stay
    unique across users; a clash raises ValueError, the same way a unique
    index would fail the insert.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[UUID, User] = {}
        self._by_email: dict[str, UUID] = {}
        self._by_username: dict[str, UUID] = {}

    def find_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    def find_by_email(self, email: str) -> User | None:
        user_id = self._by_email.get(email)
        return self._by_id.get(user_id) if user_id is not None else None

    def find_by_username(self, username: str) -> User | None:
        user_id = self._by_username.get(username)
        return self._by_id.get(user_id) if user_id is not None else None

    def exists_by_email(self, email: str) -> bool:
        return email in self._by_email

    def exists_by_username(self, username: str) -> bool:
        return username in self._by_username

    def save(self, user: User) -> User:
        with self._lock:
            owner = self._by_email.get(user.email)
            if owner is not None and owner != user.id:
                raise ValueError("email already exists")
            owner = self._by_username.get(user.username)
            if owner is not None and owner != user.id:
                raise ValueError("username already exists")

            previous = self._by_id.get(user.id)
            if previous is not None:
                self._by_email.pop(previous.email, None)
                self._by_username.pop(previous.username, None)

            self._by_id[user.id] = user
            self._by_email[user.email] = user.id
            self._by_username[user.username] = user.id
            return user

    def set_active(self, user_id: UUID, is_active: bool) -> None:
        u = self._by_id.get(user_id)
        if u is None:
            raise KeyError("user not found")
        self.save(replace(u, is_active=is_active))

    def clear(self) -> None:
        with self._lock:
            self._by_id.clear()
            self._by_email.clear()
            self._by_username.clear()
