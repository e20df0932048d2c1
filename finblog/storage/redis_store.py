from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from finblog.logging import get_logger, mask_url_password
from finblog.service.errors import (
    ConnectionFailedError,
    InitializationError,
    SerializationError,
    SessionNotFoundError,
)
from finblog.storage.common import decode_user, encode_user, new_session_token
from finblog.storage.models import User

logger = get_logger(__name__)

# redis-py surfaces socket failures as RedisError subclasses, but a raw
# OSError (including TimeoutError) can still escape from the transport layer.
_BACKEND_ERRORS = (RedisError, OSError)


class RedisSessionStore:
    """Session store on Redis, accessed through a bounded blocking pool.

    Each session lives under ``<key_prefix><token>`` with an expiry set in
    the same ``SET`` command, so Redis alone is responsible for eviction.
    When all ``pool_size`` connections are busy callers wait up to
    ``pool_timeout`` seconds before the request fails with a connection
    error.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        ttl_seconds: int,
        pool_size: int = 10,
        pool_timeout: float = 30.0,
        socket_timeout: float = 5.0,
        key_prefix: str = "auth:session:",
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise InitializationError("session TTL must be positive")
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        if client is not None:
            self.client = client
            return
        try:
            pool = aioredis.BlockingConnectionPool.from_url(
                redis_url,
                max_connections=pool_size,
                timeout=pool_timeout,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        except ValueError as exc:
            raise ConnectionFailedError(
                f"invalid redis url {mask_url_password(redis_url)}: {exc}"
            ) from exc
        self.client = aioredis.Redis(connection_pool=pool)
        logger.info(
            "redis_session_store_created",
            redis_url=mask_url_password(redis_url),
            pool_size=pool_size,
            ttl_seconds=ttl_seconds,
        )

    def _key(self, token: str) -> str:
        return f"{self.key_prefix}{token}"

    async def save(self, user: User) -> str:
        token = new_session_token()
        try:
            await self.client.set(self._key(token), encode_user(user), ex=self.ttl_seconds)
        except _BACKEND_ERRORS as exc:
            logger.error("session_save_failed", user_id=user.id, error=str(exc))
            raise ConnectionFailedError(f"saving session: {exc}") from exc
        return token

    async def get(self, token: str) -> User:
        try:
            raw = await self.client.get(self._key(token))
        except UnicodeDecodeError as exc:
            # decode_responses=True: non UTF-8 bytes fail inside the client
            logger.warning("session_record_undecodable", error=str(exc))
            raise SerializationError("invalid session record format") from exc
        except _BACKEND_ERRORS as exc:
            logger.error("session_lookup_failed", error=str(exc))
            raise ConnectionFailedError(f"reading session: {exc}") from exc
        if raw is None:
            raise SessionNotFoundError()
        return decode_user(raw)

    async def delete(self, token: str) -> None:
        try:
            # DEL on a missing key is a no-op, so repeated logouts succeed
            await self.client.delete(self._key(token))
        except _BACKEND_ERRORS as exc:
            logger.error("session_delete_failed", error=str(exc))
            raise ConnectionFailedError(f"deleting session: {exc}") from exc

    async def ping(self) -> None:
        try:
            await self.client.ping()
        except _BACKEND_ERRORS as exc:
            raise ConnectionFailedError(f"pinging redis: {exc}") from exc

    async def close(self) -> None:
        """Close the client and disconnect every pooled connection."""
        await self.client.aclose()
        await self.client.connection_pool.disconnect()
