"""
Shared fixtures.

No test talks to a real server: every HTTP exchange goes through
FakeBackend, an httpx.MockTransport with per-route scripted replies.
"""

import asyncio
import base64
import inspect
import json
from typing import Any, Callable, Optional

import httpx
import pytest

from finflow.audit import InMemoryAuditStorage
from finflow.config import NetworkSettings
from finflow.orchestrator import create_app_components
from finflow.services.storage import FileCacheService, TokenStore


BASE_URL = "https://api.finflow.test"


def make_jwt(claims: dict[str, Any]) -> str:
    """Unsigned JWT with the given payload claims."""
    def segment(obj: dict) -> str:
        raw = json.dumps(obj).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return f"{segment({'alg': 'HS256', 'typ': 'JWT'})}.{segment(claims)}.signature"


def reply(status_code: int = 200, json: Any = None, text: Optional[str] = None) -> Callable:
    """Response factory; a fresh httpx.Response is built per call."""
    def build(request: httpx.Request) -> httpx.Response:
        if json is not None:
            return httpx.Response(status_code, json=json)
        return httpx.Response(status_code, text=text or "")
    return build


PROFILE_JSON = {
    "id": "user-1",
    "username": "alice",
    "email": "alice@example.com",
    "firstName": "Alice",
    "lastName": "Nguyen",
    "roles": ["USER"],
}


class FakeBackend:
    """
    Scripted backend.

    Each route holds a list of reply factories. Calls consume them in
    order and the last one repeats. Unknown routes answer 404.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list[Callable]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, *replies: Callable) -> None:
        self.routes[(method.upper(), path)] = list(replies)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == path
        ]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self.routes.get((request.method, request.url.path))
        if not replies:
            return httpx.Response(404, text="Not Found")

        factory = replies.pop(0) if len(replies) > 1 else replies[0]
        response = factory(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    async def wait_for(self, method: str, path: str, count: int = 1) -> None:
        """Block until the route has received count requests."""
        for _ in range(200):
            if len(self.calls(method, path)) >= count:
                return
            await asyncio.sleep(0.005)
        raise AssertionError(f"{method} {path} was not called {count} time(s)")


def gated(status_code: int = 200, json: Any = None) -> tuple[asyncio.Event, Callable]:
    """Reply factory that holds the response until the returned event is set."""
    gate = asyncio.Event()

    async def build(request: httpx.Request) -> httpx.Response:
        await gate.wait()
        return httpx.Response(status_code, json=json)

    return gate, build


@pytest.fixture
def network_settings() -> NetworkSettings:
    return NetworkSettings(base_url=BASE_URL, connect_attempts=1)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def token_store() -> TokenStore:
    return TokenStore()


@pytest.fixture
def cache(tmp_path) -> FileCacheService:
    return FileCacheService(tmp_path / "cache")


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
async def components(backend, network_settings, tmp_path, audit_storage):
    """Fully wired session core over the fake backend."""
    app = create_app_components(
        network_settings=network_settings,
        cache_dir=tmp_path / "cache",
        transport=backend.transport,
        audit_storage=audit_storage,
    )
    yield app
    await app.api_client.aclose()
