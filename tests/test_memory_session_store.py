import pytest

from finblog.service.errors import (
    ConnectionFailedError,
    InitializationError,
    SerializationError,
    SessionNotFoundError,
)
from finblog.storage.memory import MemorySessionStore
from finblog.storage.models import User

OCTOCAT = User(
    id=583231,
    login="octocat",
    name="The Octocat",
    avatar_url="https://avatars.githubusercontent.com/u/583231?v=4",
)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def test_save_then_get_returns_same_user(memory_store):
    token = await memory_store.save(OCTOCAT)
    assert await memory_store.get(token) == OCTOCAT


async def test_unknown_token_not_found(memory_store):
    with pytest.raises(SessionNotFoundError) as exc_info:
        await memory_store.get("no-such-token")
    assert str(exc_info.value) == "session not found"
    assert exc_info.value.status_code == 404


async def test_delete_then_get_not_found(memory_store):
    token = await memory_store.save(OCTOCAT)
    await memory_store.delete(token)

    with pytest.raises(SessionNotFoundError):
        await memory_store.get(token)


async def test_delete_is_idempotent(memory_store):
    token = await memory_store.save(OCTOCAT)
    await memory_store.delete(token)
    await memory_store.delete(token)
    await memory_store.delete("never-issued")


async def test_session_expires_after_ttl():
    clock = FakeClock()
    store = MemorySessionStore(ttl_seconds=60, clock=clock)
    token = await store.save(OCTOCAT)

    clock.advance(59)
    assert await store.get(token) == OCTOCAT

    clock.advance(1)
    with pytest.raises(SessionNotFoundError):
        await store.get(token)
    assert len(store) == 0


async def test_tokens_are_unique(memory_store):
    tokens = {await memory_store.save(OCTOCAT) for _ in range(2000)}
    assert len(tokens) == 2000
    assert memory_store.writes == 2000


async def test_sessions_are_independent(memory_store):
    other = User(id=2, login="hubot", name="Hubot", avatar_url="https://example.com/h.png")
    first = await memory_store.save(OCTOCAT)
    second = await memory_store.save(other)

    await memory_store.delete(first)

    assert await memory_store.get(second) == other


async def test_display_name_with_separators_round_trips(memory_store):
    user = User(id=7, login="mona", name="Mona, Lisa: \"the\" Octocat", avatar_url="https://example.com/a.png")
    token = await memory_store.save(user)
    assert await memory_store.get(token) == user


@pytest.mark.parametrize(
    "raw",
    [
        "583231,octocat,The Octocat,https://example.com/a.png",
        '{"id": 1, "login": "octocat"}',
        '{"id": "1", "login": "octocat", "name": "x", "avatar_url": "y"}',
        "[]",
    ],
)
async def test_malformed_record_is_serialization_error(memory_store, raw):
    memory_store.put_raw("bad", raw)

    with pytest.raises(SerializationError):
        await memory_store.get("bad")


async def test_canned_errors(memory_store):
    store = MemorySessionStore(errors={"get": ConnectionFailedError("reading session: down")})
    token = await store.save(OCTOCAT)

    with pytest.raises(ConnectionFailedError):
        await store.get(token)


def test_non_positive_ttl_rejected():
    with pytest.raises(InitializationError):
        MemorySessionStore(ttl_seconds=0)


@pytest.mark.parametrize("user_id", [-1, True])
async def test_unreadable_user_is_not_saved(memory_store, user_id):
    user = User(id=user_id, login="octocat", name="The Octocat", avatar_url="https://example.com/o.png")

    with pytest.raises(SerializationError) as exc_info:
        await memory_store.save(user)

    assert exc_info.value.message == "invalid user id format"
    assert memory_store.writes == 0
    assert len(memory_store) == 0
