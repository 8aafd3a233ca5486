import asyncio
import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from src.app.services.flaresolverr.client import FlareSolverrClient
from src.app.services.flaresolverr.lifecycle import ShutdownCoordinator

FSR_URL = "http://flaresolverr.test:8191/v1"


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFlareSolverr:
    """In-memory FlareSolverr v1 endpoint served through httpx.MockTransport.

    Records every command it receives. Page bodies are configured per URL; a
    list of bodies is served in order and the last one repeats.
    """

    def __init__(self) -> None:
        self.commands: list[dict[str, Any]] = []
        self.pages: dict[str, list[str]] = {}
        self.post_replies: dict[str, list[str]] = {}
        self.cookies: list[dict[str, Any]] = []
        self.live_sessions: list[str] = []
        self.created = 0

        # Failure injection
        self.transport_error: Exception | None = None
        self.http_status: int = 200
        self.error_message: str | None = None
        self.fail_create = False
        self.garbage_reply = False
        self.fail_destroy = False
        self.destroy_error: Exception | None = None
        self.create_delay = 0.0

    # ---- configuration helpers -----------------------------------------
    def set_page(self, url: str, *bodies: str) -> None:
        self.pages[url] = list(bodies)

    def set_post_reply(self, url: str, *bodies: str) -> None:
        self.post_replies[url] = list(bodies)

    def sent(self, cmd: str) -> list[dict[str, Any]]:
        return [c for c in self.commands if c["cmd"] == cmd]

    def count(self, cmd: str) -> int:
        return len(self.sent(cmd))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # ---- request handling ----------------------------------------------
    async def handle(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.commands.append(payload)
        cmd = payload["cmd"]

        if self.transport_error is not None:
            raise self.transport_error

        if cmd == "sessions.create":
            return await self._create()
        if cmd == "sessions.destroy":
            if self.fail_destroy:
                raise httpx.ConnectError("proxy went away", request=request)
            if self.destroy_error is not None:
                raise self.destroy_error
            session = payload.get("session")
            if session not in self.live_sessions:
                return httpx.Response(200, json={"status": "error", "message": "The session doesn't exist."})
            self.live_sessions.remove(session)
            return httpx.Response(200, json={"status": "ok", "message": "The session has been removed."})
        if cmd == "sessions.list":
            return httpx.Response(200, json={"status": "ok", "sessions": list(self.live_sessions)})

        if self.http_status != 200:
            return httpx.Response(self.http_status, text="Internal Server Error")
        if self.garbage_reply:
            return httpx.Response(200, text="<html><body>502 Bad Gateway</body></html>")
        if self.error_message is not None:
            return httpx.Response(200, json={"status": "error", "message": self.error_message})

        if cmd == "request.get":
            body = self._next(self.pages, payload["url"], "<html><body>ok</body></html>")
        else:
            body = self._next(self.post_replies, payload["url"], "")
        return httpx.Response(
            200,
            json={
                "status": "ok",
                "message": "Challenge not detected!",
                "solution": {
                    "url": payload["url"],
                    "status": 200,
                    "response": body,
                    "cookies": list(self.cookies),
                    "userAgent": "Mozilla/5.0 (X11; Linux x86_64) Chrome/120.0.0.0",
                },
            },
        )

    async def _create(self) -> httpx.Response:
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        else:
            await asyncio.sleep(0)
        if self.fail_create:
            return httpx.Response(200, json={"status": "error", "message": "Max sessions reached"})
        self.created += 1
        session_id = f"session-{self.created}"
        self.live_sessions.append(session_id)
        return httpx.Response(200, json={"status": "ok", "message": "Session created successfully.", "session": session_id})

    @staticmethod
    def _next(table: dict[str, list[str]], url: str, default: str) -> str:
        bodies = table.get(url)
        if not bodies:
            return default
        if len(bodies) > 1:
            return bodies.pop(0)
        return bodies[0]


@pytest.fixture
def fake_proxy() -> FakeFlareSolverr:
    return FakeFlareSolverr()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def coordinator() -> ShutdownCoordinator:
    """Coordinator that never touches atexit or real signal handlers."""
    return ShutdownCoordinator(install_hooks=False)


@pytest.fixture
def mock_settings() -> MagicMock:
    """Create mock settings for testing."""
    settings = MagicMock()
    settings.FSR_URL = FSR_URL
    settings.FSR_TIMEOUT_MS = 60000
    settings.FSR_SESSION_TTL = 300
    settings.FSR_REFRESH_WAIT_SECONDS = 1
    settings.FSR_DEFAULT_WAIT_SECONDS = 2
    settings.FSR_MAX_RETRIES = 3
    settings.FSR_RETRY_BASE_DELAY = 2.0
    settings.FSR_CHALLENGE_SETTLE_DELAY = 2.0
    return settings


@pytest.fixture
def make_client(
    fake_proxy: FakeFlareSolverr,
    clock: FakeClock,
    coordinator: ShutdownCoordinator,
    mock_settings: MagicMock,
) -> Callable[..., FlareSolverrClient]:
    """Factory building clients wired to the fake proxy."""

    def _make(**kwargs: Any) -> FlareSolverrClient:
        http_client = httpx.AsyncClient(transport=fake_proxy.transport)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("coordinator", coordinator)
        return FlareSolverrClient("test", mock_settings, http_client=http_client, **kwargs)

    return _make


@pytest_asyncio.fixture
async def client(make_client: Callable[..., FlareSolverrClient]) -> FlareSolverrClient:
    _client = make_client()
    yield _client
    await _client.close()


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that records requested delays."""
    return AsyncMock(return_value=None)
