"""
FlareSolverr Client - Session Store + Command Executor

Shared client for talking to a FlareSolverr proxy. FlareSolverr starts a
Chromium for every session, so without discipline a busy process ends up
with hundreds of browsers on the proxy host.

Rules:
1. One client per provider, long-lived, never one per request
2. close() (or destroy_session()) when the owner shuts down
3. Reuse the session while it is younger than the TTL
4. Any transport or proxy failure destroys the session immediately

Usage:
    async with FlareSolverrClient("coleka", settings) as client:
        await client.ensure_session("https://www.coleka.com/fr")
        html = await client.get("https://www.coleka.com/fr/search?q=lego")

The client never retries; see retry.py.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from .exceptions import FlareSolverrException, UpstreamUnavailableError
from .lifecycle import ShutdownCoordinator, get_shutdown_coordinator
from .protocol import ProxyCommand, ProxyResponse, ProxySolution, RequestCommand
from .session import DEFAULT_SESSION_TTL_SECONDS, CookieData, SessionStore

if TYPE_CHECKING:
    from ...core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_FSR_URL = "http://flaresolverr:8191/v1"
DEFAULT_TIMEOUT_MS = 60000

# Extra seconds granted to the HTTP call on top of the proxy's own maxTimeout
TRANSPORT_TIMEOUT_MARGIN_SECONDS = 10.0


@dataclass
class DestroyOutcome:
    """Result of destroy_session().

    Local state is always cleared; ``remote_acknowledged`` only says whether
    the proxy confirmed the destroy.
    """

    session_id: str | None
    remote_acknowledged: bool = False
    error: str | None = None

    @property
    def had_session(self) -> bool:
        return self.session_id is not None


@dataclass
class HealthStatus:
    """Result of a sessions.list health check."""

    healthy: bool
    latency_ms: float
    message: str
    sessions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "latency": round(self.latency_ms),
            "message": self.message,
            "sessions": self.sessions,
        }


class FlareSolverrClient:
    """Single-session client for a FlareSolverr proxy.

    Owns exactly one proxy session (created lazily) and its cookie jar.
    Registers itself with a ShutdownCoordinator so the remote browser is
    destroyed when the process exits.
    """

    def __init__(
        self,
        provider_name: str = "flaresolverr",
        settings: "Settings | None" = None,
        *,
        fsr_url: str | None = None,
        timeout_ms: int | None = None,
        session_ttl: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        coordinator: ShutdownCoordinator | None = None,
        register_shutdown: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the client.

        Args:
            provider_name: Name used to prefix log lines
            settings: Application settings (FSR_* values are used as defaults)
            fsr_url: Proxy endpoint, overrides settings
            timeout_ms: Default maxTimeout per command, overrides settings
            session_ttl: Session refresh age in seconds, overrides settings
            http_client: Injected httpx client (not closed by close())
            coordinator: Shutdown coordinator to register with
            register_shutdown: Set False to skip shutdown registration entirely
            clock: Wall-clock source, injectable for tests
        """
        self.provider_name = provider_name
        self.fsr_url = fsr_url or (settings.FSR_URL if settings else DEFAULT_FSR_URL)
        self.timeout_ms = timeout_ms or (settings.FSR_TIMEOUT_MS if settings else DEFAULT_TIMEOUT_MS)
        self.refresh_wait_seconds = settings.FSR_REFRESH_WAIT_SECONDS if settings else 1
        self.default_wait_seconds = settings.FSR_DEFAULT_WAIT_SECONDS if settings else 2

        ttl = session_ttl if session_ttl is not None else (settings.FSR_SESSION_TTL if settings else None)
        self._store = SessionStore(
            ttl_seconds=ttl if ttl is not None else DEFAULT_SESSION_TTL_SECONDS,
            clock=clock,
        )

        self._http = http_client
        self._owns_http = http_client is None
        self._closed = False

        self._stats = {
            "requests": 0,
            "failures": 0,
            "sessions_created": 0,
            "sessions_destroyed": 0,
            "refreshes": 0,
        }

        self._coordinator: ShutdownCoordinator | None = None
        if register_shutdown:
            self._coordinator = coordinator or get_shutdown_coordinator()
            self._coordinator.register(self)

        logger.debug(f"[{self.provider_name}] FlareSolverr client created ({self.fsr_url})")

    # ============================================
    # Public API
    # ============================================

    @property
    def session_id(self) -> str | None:
        return self._store.session_id

    @property
    def has_session(self) -> bool:
        return self._store.has_session

    @property
    def store(self) -> SessionStore:
        return self._store

    def get_cookies(self) -> list[CookieData]:
        """Cookies of the current session (copy)."""
        return self._store.cookies

    async def ensure_session(self, seed_url: str) -> None:
        """Make sure a usable session exists.

        Creates a session when none is held (best-effort: the client carries
        on session-less if the proxy refuses). A session older than the TTL
        is refreshed with one GET of ``seed_url``. Proxy failures are logged,
        never raised.

        Raises:
            RuntimeError: the client has been closed
        """
        self._ensure_open()
        if not self._store.has_session:
            await self._create_session()
            if not self._store.has_session:
                return

        if self._store.is_fresh():
            return

        logger.debug(f"[{self.provider_name}] Refreshing session {self._store.session_id}...")
        try:
            await self.get(seed_url, wait_seconds=self.refresh_wait_seconds)
        except FlareSolverrException as e:
            # get() already destroyed the session
            logger.warning(f"[{self.provider_name}] Session refresh visit failed: {e}")
            return

        self._store.touch()
        self._stats["refreshes"] += 1

    async def get(
        self,
        url: str,
        *,
        wait_seconds: int | None = None,
        max_timeout_ms: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """GET ``url`` through the proxy and return the page body."""
        self._ensure_open()
        command = self._build_command(
            ProxyCommand.REQUEST_GET,
            url,
            wait_seconds=wait_seconds,
            max_timeout_ms=max_timeout_ms,
            headers=headers,
        )
        solution = await self._execute(command)
        return solution.response or ""

    async def post(
        self,
        url: str,
        post_data: str,
        *,
        wait_seconds: int | None = None,
        max_timeout_ms: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """POST ``post_data`` (urlencoded string) to ``url`` through the proxy."""
        self._ensure_open()
        command = self._build_command(
            ProxyCommand.REQUEST_POST,
            url,
            wait_seconds=wait_seconds,
            max_timeout_ms=max_timeout_ms,
            headers=headers,
            post_data=post_data,
        )
        solution = await self._execute(command)
        return solution.response or ""

    async def destroy_session(self) -> DestroyOutcome:
        """Destroy the proxy session and clear local state.

        Idempotent. Local state is cleared even when the remote call fails;
        remote failures are logged and reported in the outcome, never raised.
        """
        session_id = self._store.clear()
        if session_id is None:
            return DestroyOutcome(session_id=None)

        logger.debug(f"[{self.provider_name}] Destroying session: {session_id}")
        outcome = await self._send_destroy(session_id)
        self._stats["sessions_destroyed"] += 1
        if outcome.remote_acknowledged:
            logger.debug(f"[{self.provider_name}] Session {session_id} destroyed")
        return outcome

    async def health_check(self) -> HealthStatus:
        """Check the proxy with sessions.list. Never raises."""
        start = time.perf_counter()
        try:
            response = await self._http_client().post(
                self.fsr_url,
                json={"cmd": ProxyCommand.SESSIONS_LIST.value},
                timeout=self._transport_timeout(self.timeout_ms),
            )
            reply = ProxyResponse.model_validate(response.json())
        except Exception as e:
            return HealthStatus(
                healthy=False,
                latency_ms=(time.perf_counter() - start) * 1000,
                message=f"FlareSolverr error: {e}",
            )

        latency_ms = (time.perf_counter() - start) * 1000
        count = len(reply.sessions)
        if reply.ok:
            message = f"FlareSolverr available ({count} active sessions)"
        else:
            message = "FlareSolverr unavailable"
        return HealthStatus(healthy=reply.ok, latency_ms=latency_ms, message=message, sessions=count)

    def get_stats(self) -> dict[str, Any]:
        """Get client statistics."""
        return {
            "provider": self.provider_name,
            "session_id": self._store.session_id,
            "cookies": len(self._store.session.cookies),
            **self._stats,
        }

    async def close(self) -> None:
        """Destroy the session and release the HTTP client. Idempotent.

        The client cannot be used afterwards: ensure_session(), get() and
        post() raise RuntimeError.
        """
        if self._closed:
            return
        self._closed = True

        await self.destroy_session()

        if self._http is not None and self._owns_http:
            try:
                await self._http.aclose()
            except Exception as e:
                logger.warning(f"[{self.provider_name}] Error closing HTTP client: {e}")
            self._http = None

        if self._coordinator is not None:
            self._coordinator.unregister(self)

    async def __aenter__(self) -> "FlareSolverrClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ============================================
    # Internals
    # ============================================

    def _ensure_open(self) -> None:
        # Closed clients are no longer registered for shutdown
        if self._closed:
            raise RuntimeError(f"[{self.provider_name}] FlareSolverr client is closed")

    def _http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(headers={"Content-Type": "application/json"})
            self._owns_http = True
        return self._http

    @staticmethod
    def _transport_timeout(max_timeout_ms: int) -> float:
        return max_timeout_ms / 1000 + TRANSPORT_TIMEOUT_MARGIN_SECONDS

    def _build_command(
        self,
        cmd: ProxyCommand,
        url: str,
        *,
        wait_seconds: int | None,
        max_timeout_ms: int | None,
        headers: dict[str, str] | None,
        post_data: str | None = None,
    ) -> RequestCommand:
        return RequestCommand(
            cmd=cmd,
            url=url,
            max_timeout_ms=max_timeout_ms or self.timeout_ms,
            wait_seconds=self.default_wait_seconds if wait_seconds is None else wait_seconds,
            post_data=post_data,
            headers=headers,
            session_id=self._store.session_id,
        )

    async def _create_session(self) -> None:
        """Ask the proxy for a new session. Failures are logged, not raised."""
        try:
            response = await self._http_client().post(
                self.fsr_url,
                json={"cmd": ProxyCommand.SESSIONS_CREATE.value},
                timeout=self._transport_timeout(self.timeout_ms),
            )
            reply = ProxyResponse.model_validate(response.json())
        except Exception as e:
            logger.warning(f"[{self.provider_name}] Unable to create a session: {e}")
            return

        if not reply.session:
            logger.warning(
                f"[{self.provider_name}] Unable to create a session: {reply.message or 'no session id returned'}"
            )
            return

        orphan = self._store.set_session_id(reply.session)
        self._store.touch()
        self._stats["sessions_created"] += 1
        logger.debug(f"[{self.provider_name}] Session created: {reply.session}")

        if orphan:
            # A concurrent ensure_session() created one too; keep the newest
            await self._send_destroy(orphan)

    async def _send_destroy(self, session_id: str) -> DestroyOutcome:
        """Best-effort sessions.destroy. Never raises."""
        try:
            response = await self._http_client().post(
                self.fsr_url,
                json={"cmd": ProxyCommand.SESSIONS_DESTROY.value, "session": session_id},
                timeout=self._transport_timeout(self.timeout_ms),
            )
            response.raise_for_status()
            reply = ProxyResponse.model_validate(response.json())
        except Exception as e:
            logger.warning(f"[{self.provider_name}] Error destroying session {session_id}: {e}")
            return DestroyOutcome(session_id=session_id, remote_acknowledged=False, error=str(e))

        if not reply.ok:
            message = reply.message or f"status={reply.status}"
            logger.warning(f"[{self.provider_name}] Proxy refused to destroy session {session_id}: {message}")
            return DestroyOutcome(session_id=session_id, remote_acknowledged=False, error=message)
        return DestroyOutcome(session_id=session_id, remote_acknowledged=True)

    async def _execute(self, command: RequestCommand) -> ProxySolution:
        """Dispatch a command. Any failure destroys the session, then raises."""
        self._stats["requests"] += 1
        cmd_name = command.cmd.value

        try:
            response = await self._http_client().post(
                self.fsr_url,
                json=command.to_payload(),
                timeout=self._transport_timeout(command.max_timeout_ms),
            )
        except httpx.HTTPError as e:
            await self._fail()
            raise UpstreamUnavailableError(
                f"FlareSolverr unreachable: {e}",
                url=command.url,
                command=cmd_name,
            ) from e

        if not response.is_success:
            await self._fail()
            raise UpstreamUnavailableError(
                f"FlareSolverr error: {response.status_code}",
                url=command.url,
                command=cmd_name,
                status_code=response.status_code,
            )

        try:
            reply = ProxyResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            await self._fail()
            raise UpstreamUnavailableError(
                f"FlareSolverr returned an unreadable reply: {e}",
                url=command.url,
                command=cmd_name,
                status_code=response.status_code,
            ) from e

        if not reply.ok:
            # The remote browser may be in a bad state; do not reuse it
            await self._fail()
            raise UpstreamUnavailableError(
                f"FlareSolverr failed: {reply.message or 'Unknown error'}",
                url=command.url,
                command=cmd_name,
                status_code=response.status_code,
                proxy_status=reply.status,
                proxy_message=reply.message,
            )

        solution = reply.solution or ProxySolution()
        if solution.cookies:
            self._store.merge_cookies(CookieData.from_proxy(c) for c in solution.cookies)
        return solution

    async def _fail(self) -> None:
        self._stats["failures"] += 1
        await self.destroy_session()
