"""
FlareSolverr v1 Wire Protocol

Every command is a JSON POST to the single ``/v1`` endpoint:

    {"cmd": "sessions.create"}                      -> {"status": "ok", "session": "<id>"}
    {"cmd": "sessions.destroy", "session": "<id>"}  -> {"status": "ok"}
    {"cmd": "sessions.list"}                        -> {"status": "ok", "sessions": [...]}
    {"cmd": "request.get", "url": ..., "session": ..., "maxTimeout": ..., "waitInSeconds": ...}
    {"cmd": "request.post", ..., "postData": "...", "headers": {...}}
        -> {"status": "ok" | "error", "message": "...",
            "solution": {"response": "<body>", "cookies": [...]}}
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProxyCommand(str, Enum):
    """Commands understood by the FlareSolverr endpoint."""

    SESSIONS_CREATE = "sessions.create"
    SESSIONS_DESTROY = "sessions.destroy"
    SESSIONS_LIST = "sessions.list"
    REQUEST_GET = "request.get"
    REQUEST_POST = "request.post"


@dataclass(frozen=True)
class RequestCommand:
    """A single fetch command, immutable once dispatched."""

    cmd: ProxyCommand
    url: str
    max_timeout_ms: int
    wait_seconds: int = 0
    post_data: str | None = None
    headers: dict[str, str] | None = None
    session_id: str | None = None

    @property
    def kind(self) -> str:
        """``get`` or ``post``."""
        return "post" if self.cmd is ProxyCommand.REQUEST_POST else "get"

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON body sent to the proxy, omitting unset fields."""
        payload: dict[str, Any] = {
            "cmd": self.cmd.value,
            "url": self.url,
            "maxTimeout": self.max_timeout_ms,
        }
        if self.wait_seconds:
            payload["waitInSeconds"] = self.wait_seconds
        if self.post_data is not None:
            payload["postData"] = self.post_data
        if self.headers:
            payload["headers"] = dict(self.headers)
        if self.session_id:
            payload["session"] = self.session_id
        return payload


class ProxyCookie(BaseModel):
    """Cookie as reported in ``solution.cookies``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    value: str = ""
    domain: str = ""
    path: str = "/"
    expires: float | None = None
    secure: bool = False
    http_only: bool = Field(default=False, alias="httpOnly")
    same_site: str | None = Field(default=None, alias="sameSite")


class ProxySolution(BaseModel):
    """The ``solution`` object of a request.get / request.post reply."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = None
    status: int | None = None
    response: str | None = None
    cookies: list[ProxyCookie] = Field(default_factory=list)
    user_agent: str | None = Field(default=None, alias="userAgent")


class ProxyResponse(BaseModel):
    """Top-level reply to any command."""

    model_config = ConfigDict(extra="ignore")

    status: str = "error"
    message: str | None = None
    session: str | None = None
    sessions: list[str] = Field(default_factory=list)
    solution: ProxySolution | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"
