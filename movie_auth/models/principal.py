from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated bearer token.

    Carried through the request via FastAPI's dependency system, so
    endpoints never handle the raw token.

        user_id:  ``user_id`` claim (local user id)
        email:    ``sub`` claim (stable login identifier)
        username: ``username`` claim
    """

    user_id: str
    email: str
    username: str
