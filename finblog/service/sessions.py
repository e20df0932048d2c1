from __future__ import annotations

from typing import Protocol

from finblog.logging import get_logger
from finblog.storage.common import SessionStore
from finblog.storage.models import User

logger = get_logger(__name__)


class SessionManager(Protocol):
    """Read and invalidate sessions; issuing them stays with the authenticator."""

    async def session(self, token: str) -> User: ...

    async def logout(self, token: str) -> None: ...


class StoreSessionManager:
    def __init__(self, store: SessionStore) -> None:
        self.store = store

    async def session(self, token: str) -> User:
        return await self.store.get(token)

    async def logout(self, token: str) -> None:
        await self.store.delete(token)
        logger.info("session_logged_out")
