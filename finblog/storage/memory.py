from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Mapping, Optional, Tuple

from finblog.logging import get_logger
from finblog.service.errors import AuthError, InitializationError, SessionNotFoundError
from finblog.storage.common import decode_user, encode_user, new_session_token
from finblog.storage.models import User


class MemorySessionStore:
    """In-process session store with the same contract as the Redis store.

    Used for local development (``USE_MEMORY_STORE``) and as the test double
    for everything that depends on a session store. Records are kept encoded
    so malformed data behaves exactly as it would coming out of Redis.

    ``errors`` maps an operation name (``save``, ``get``, ``delete``,
    ``ping``) to an exception raised instead of performing it.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = 24 * 60 * 60,
        clock: Callable[[], float] = time.monotonic,
        errors: Optional[Mapping[str, AuthError]] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise InitializationError("session TTL must be positive")
        self.logger = get_logger(__name__)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.errors: Dict[str, AuthError] = dict(errors or {})
        self._records: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self.writes = 0

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._records)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            self._purge_expired()
            return token in self._records

    def _maybe_fail(self, operation: str) -> None:
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [token for token, (_, expires_at) in self._records.items() if expires_at <= now]
        for token in expired:
            del self._records[token]

    def put_raw(self, token: str, raw: str) -> None:
        """Store an arbitrary record, bypassing encoding."""
        with self._lock:
            self._records[token] = (raw, self._clock() + self.ttl_seconds)

    async def save(self, user: User) -> str:
        self._maybe_fail("save")
        token = new_session_token()
        with self._lock:
            self._records[token] = (encode_user(user), self._clock() + self.ttl_seconds)
            self.writes += 1
        self.logger.debug("memory_session_saved", user_id=user.id)
        return token

    async def get(self, token: str) -> User:
        self._maybe_fail("get")
        with self._lock:
            self._purge_expired()
            entry = self._records.get(token)
        if entry is None:
            raise SessionNotFoundError()
        return decode_user(entry[0])

    async def delete(self, token: str) -> None:
        self._maybe_fail("delete")
        with self._lock:
            self._records.pop(token, None)

    async def ping(self) -> None:
        self._maybe_fail("ping")

    async def close(self) -> None:
        with self._lock:
            self._records.clear()
