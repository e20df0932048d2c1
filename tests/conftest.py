import asyncio
import inspect
import json
import os
import sys
from pathlib import Path

# Set before any imports that might read settings
os.environ.setdefault("USE_MEMORY_STORE", "true")
os.environ.setdefault("GH_CLIENT_ID", "test-client-id")
os.environ.setdefault("GH_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("GH_ORG", "myorg")
os.environ.setdefault("BASE_URL", "https://blog.example.com")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/1")

import httpx  # noqa: E402
import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from finblog.config import Settings  # noqa: E402
from finblog.logging import correlation_id_var  # noqa: E402
from finblog.service.auth import GithubAuthenticator  # noqa: E402
from finblog.service.runtime import reset_runtime_for_tests  # noqa: E402
from finblog.storage.memory import MemorySessionStore  # noqa: E402

OCTOCAT = {
    "id": 583231,
    "login": "octocat",
    "name": "The Octocat",
    "avatar_url": "https://avatars.githubusercontent.com/u/583231?v=4",
    "type": "User",
}


class FakeGithub:
    """Canned GitHub OAuth and REST responses served through httpx.MockTransport.

    Each endpoint answers with ``(status, body)``; a body that is not a
    ``str`` is JSON encoded. Setting ``fail_with`` to an exception makes
    every request raise it instead.
    """

    def __init__(self) -> None:
        self.token = (200, {"access_token": "tok_abc", "token_type": "bearer", "scope": "read:user,read:org"})
        self.user = (200, dict(OCTOCAT))
        self.orgs = (200, [{"login": "myorg", "id": 1}, {"login": "octo-friends", "id": 2}])
        self.fail_with: Exception | None = None
        self.requests: list[httpx.Request] = []

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        routes = {
            "/login/oauth/access_token": self.token,
            "/user": self.user,
            "/user/orgs": self.orgs,
        }
        if request.url.path not in routes:
            return httpx.Response(404, json={"message": "Not Found"})
        status, body = routes[request.url.path]
        if isinstance(body, str):
            return httpx.Response(status, content=body.encode())
        return httpx.Response(status, content=json.dumps(body).encode(),
                              headers={"Content-Type": "application/json"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def reset_runtime_state():
    reset_runtime_for_tests()
    correlation_id_var.set(None)
    yield
    reset_runtime_for_tests()
    correlation_id_var.set(None)


@pytest.fixture
def settings():
    return Settings(
        base_url="https://blog.example.com",
        gh_client_id="test-client-id",
        gh_client_secret="test-client-secret",
        gh_org="myorg",
        use_memory_store=True,
    )


@pytest.fixture
def memory_store():
    return MemorySessionStore(ttl_seconds=3600)


@pytest.fixture
def fake_github():
    return FakeGithub()


@pytest.fixture
def authenticator(memory_store, fake_github, settings):
    return GithubAuthenticator(
        memory_store,
        client_id=settings.gh_client_id,
        client_secret=settings.gh_client_secret,
        org=settings.gh_org,
        base_url=settings.base_url,
        http_client=fake_github.client(),
    )


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
    config.addinivalue_line("markers", "integration: needs a live Redis server")
