from __future__ import annotations

import threading
from typing import Optional

import httpx

from finblog.config import Settings, get_settings, reset_settings_cache
from finblog.logging import get_logger, mask_url_password
from finblog.service.auth import Authenticator, GithubAuthenticator
from finblog.service.errors import InitializationError
from finblog.service.sessions import SessionManager, StoreSessionManager
from finblog.storage.common import SessionStore
from finblog.storage.memory import MemorySessionStore
from finblog.storage.redis_store import RedisSessionStore

logger = get_logger(__name__)


def build_store(settings: Settings) -> SessionStore:
    if settings.use_memory_store:
        return MemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
    return RedisSessionStore(
        settings.redis_url,
        ttl_seconds=settings.session_ttl_seconds,
        pool_size=settings.redis_pool_size,
        pool_timeout=settings.redis_pool_timeout,
        socket_timeout=settings.redis_socket_timeout,
        key_prefix=settings.session_key_prefix,
    )


class Runtime:
    """Holds the wired auth components for the FastAPI app.

    The store is shared: the authenticator writes sessions, the session
    manager only reads and deletes them.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        store: Optional[SessionStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or get_settings()
        logger.info(
            "runtime_init_started",
            use_memory_store=self.settings.use_memory_store,
            redis_url=mask_url_password(self.settings.redis_url),
        )
        self.store: SessionStore = store if store is not None else build_store(self.settings)
        self.sessions: SessionManager = StoreSessionManager(self.store)
        try:
            self.auth: Authenticator = GithubAuthenticator(
                self.store,
                client_id=self.settings.gh_client_id,
                client_secret=self.settings.gh_client_secret,
                org=self.settings.gh_org,
                base_url=self.settings.base_url,
                github_url=self.settings.github_url,
                api_url=self.settings.github_api_url,
                timeout=self.settings.github_timeout_seconds,
                http_client=http_client,
            )
        except InitializationError as exc:
            logger.error("runtime_auth_init_failed", error=str(exc))
            raise
        logger.info(
            "runtime_initialized",
            store_type=type(self.store).__name__,
            org=self.settings.gh_org,
        )

    async def close(self) -> None:
        await self.auth.close()
        await self.store.close()


runtime: Runtime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner."""
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def reset_runtime_for_tests(replacement: Runtime | None = None) -> None:
    """Drop the runtime singleton, optionally installing a prepared one."""
    global runtime
    with _runtime_lock:
        reset_settings_cache()
        runtime = replacement
