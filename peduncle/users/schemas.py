"""
User API schemas (request/response models).
"""

from __future__ import annotations

from pydantic import BaseModel

# Column order used by every statement touching `users`. Must match `User`.
USER_FIELDS: tuple[str, ...] = ("username", "first_name", "last_name", "pwd")


class User(BaseModel):
    username: str
    first_name: str
    last_name: str
    # Stored as given; no hashing.
    pwd: str

    def sql_values(self) -> tuple[str, ...]:
        return tuple(getattr(self, name) for name in USER_FIELDS)
