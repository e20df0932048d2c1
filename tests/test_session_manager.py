import pytest

from finblog.service.errors import ConnectionFailedError, SessionNotFoundError
from finblog.service.sessions import StoreSessionManager
from finblog.storage.memory import MemorySessionStore
from finblog.storage.models import User

USER = User(id=42, login="mona", name="Mona Lisa", avatar_url="https://example.com/m.png")


async def test_session_returns_stored_user(memory_store):
    manager = StoreSessionManager(memory_store)
    token = await memory_store.save(USER)

    assert await manager.session(token) == USER


async def test_logout_invalidates_session(memory_store):
    manager = StoreSessionManager(memory_store)
    token = await memory_store.save(USER)

    await manager.logout(token)

    with pytest.raises(SessionNotFoundError):
        await manager.session(token)


async def test_logout_unknown_token_succeeds(memory_store):
    manager = StoreSessionManager(memory_store)
    await manager.logout("never-issued")


async def test_store_errors_propagate_unchanged():
    store = MemorySessionStore(errors={"delete": ConnectionFailedError("deleting session: down")})
    manager = StoreSessionManager(store)

    with pytest.raises(ConnectionFailedError) as exc_info:
        await manager.logout("tok")
    assert exc_info.value.message == "deleting session: down"
