"""Session record helpers shared between the redis and memory stores.

Both stores generate tokens and (de)serialize users the same way so a record
written by one is readable by the other, and malformed data is reported the
same way regardless of backend.
"""

from __future__ import annotations

import json
import uuid
from typing import Protocol

from finblog.service.errors import SerializationError
from finblog.storage.models import User

RECORD_FIELDS = ("id", "login", "name", "avatar_url")


class SessionStore(Protocol):
    """Owns the token -> user mapping and its lifetime."""

    async def save(self, user: User) -> str: ...

    async def get(self, token: str) -> User: ...

    async def delete(self, token: str) -> None: ...

    async def ping(self) -> None: ...

    async def close(self) -> None: ...


def new_session_token() -> str:
    """Return a fresh random (UUID4, 122 bits) session token."""
    return str(uuid.uuid4())


def _check_record(data: dict) -> None:
    user_id = data["id"]
    # bool is an int subclass; reject it explicitly
    if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id < 0:
        raise SerializationError("invalid user id format")
    for key in ("login", "name", "avatar_url"):
        if not isinstance(data[key], str):
            raise SerializationError(f"invalid {key} format")


def encode_user(user: User) -> str:
    """Serialize a user for storage under its session token.

    JSON rather than a delimiter-joined string so display names containing
    separators survive the round trip. Users that ``decode_user`` would
    reject are refused here, before anything is written.
    """
    data = user.to_dict()
    _check_record(data)
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def decode_user(raw: str | bytes) -> User:
    """Parse a stored session record back into a ``User``.

    Raises:
        SerializationError: the record is not JSON, has missing or extra
            fields, or a field has the wrong type.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise SerializationError("invalid session record format") from exc

    if not isinstance(data, dict):
        raise SerializationError("invalid session record format")
    if set(data) != set(RECORD_FIELDS):
        raise SerializationError(
            "invalid session record format",
            detail={"fields": sorted(data)},
        )
    _check_record(data)

    return User(
        id=data["id"],
        login=data["login"],
        name=data["name"],
        avatar_url=data["avatar_url"],
    )


__all__ = [
    "RECORD_FIELDS",
    "SessionStore",
    "decode_user",
    "encode_user",
    "new_session_token",
]
