"""
Session Store for the FlareSolverr client.

Holds the single proxy session token, its cookie jar and the time it was
last refreshed. One store per client, never shared.

Cleared state is ``id=None, cookies=[], last_used_at=0.0``.
"""

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .protocol import ProxyCookie

logger = logging.getLogger(__name__)

# Default age after which a session is refreshed (5 minutes)
DEFAULT_SESSION_TTL_SECONDS = 5 * 60


@dataclass
class CookieData:
    """Standardized cookie representation."""

    name: str
    value: str
    domain: str
    path: str = "/"
    expires: float | None = None
    secure: bool = False
    http_only: bool = False
    same_site: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.name, self.domain, self.path)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires,
            "secure": self.secure,
            "http_only": self.http_only,
            "same_site": self.same_site,
        }

    @classmethod
    def from_proxy(cls, cookie: ProxyCookie) -> "CookieData":
        """Create from a cookie reported by the proxy."""
        return cls(
            name=cookie.name,
            value=cookie.value,
            domain=cookie.domain,
            path=cookie.path or "/",
            expires=cookie.expires,
            secure=cookie.secure,
            http_only=cookie.http_only,
            same_site=cookie.same_site,
        )


@dataclass
class Session:
    """State of the one proxy session a client may hold."""

    id: str | None = None
    cookies: list[CookieData] = field(default_factory=list)
    last_used_at: float = 0.0


class SessionStore:
    """Owns the session token, cookie jar and refresh timestamp."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._session = Session()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def session_id(self) -> str | None:
        return self._session.id

    @property
    def has_session(self) -> bool:
        return self._session.id is not None

    @property
    def cookies(self) -> list[CookieData]:
        return list(self._session.cookies)

    @property
    def last_used_at(self) -> float:
        return self._session.last_used_at

    def now(self) -> float:
        return self._clock()

    def is_fresh(self, now: float | None = None) -> bool:
        """True when the session was refreshed less than ``ttl_seconds`` ago."""
        if not self._session.last_used_at:
            return False
        now = self.now() if now is None else now
        return (now - self._session.last_used_at) < self.ttl_seconds

    def set_session_id(self, session_id: str) -> str | None:
        """Store a new session id and return the one it replaced, if any."""
        previous = self._session.id
        self._session.id = session_id
        if previous and previous != session_id:
            logger.debug(f"Session {previous} replaced by {session_id}")
            return previous
        return None

    def touch(self, now: float | None = None) -> None:
        self._session.last_used_at = self.now() if now is None else now

    def merge_cookies(self, cookies: Iterable[CookieData]) -> None:
        """Merge cookies into the jar.

        Existing entries are updated in place by (name, domain, path); new
        ones are appended, so the jar keeps first-seen order.
        """
        index = {cookie.key: i for i, cookie in enumerate(self._session.cookies)}
        for cookie in cookies:
            position = index.get(cookie.key)
            if position is None:
                index[cookie.key] = len(self._session.cookies)
                self._session.cookies.append(cookie)
            else:
                self._session.cookies[position] = cookie

    def clear(self) -> str | None:
        """Reset to the empty state and return the id that was held."""
        session_id = self._session.id
        self._session.id = None
        self._session.cookies = []
        self._session.last_used_at = 0.0
        return session_id
