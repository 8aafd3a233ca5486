"""FlareSolverr Core Exceptions.

Hierarchy:
    FlareSolverrException (base)
    ├── UpstreamUnavailableError  - proxy unreachable, HTTP error or status != "ok"
    ├── ChallengeNotSolvedError   - anti-bot handshake failed
    └── ProviderError             - raised by consuming providers after a good fetch
        ├── NotFoundError         - the page says the resource does not exist
        └── InvalidInputError     - caller passed something unusable

Every class carries an ``http_status`` and machine-readable ``code`` so an API
layer can map it without knowing about the proxy.
"""

from typing import Any


class FlareSolverrException(Exception):
    """Base exception for all FlareSolverr core errors."""

    http_status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.url = url
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"url={self.url}")
        details = {k: v for k, v in self.details.items() if v is not None}
        if details:
            details_str = ", ".join(f"{k}={v}" for k, v in details.items())
            parts.append(f"[{details_str}]")
        return " | ".join(parts)

    @property
    def is_retryable(self) -> bool:
        """Whether a fresh attempt could plausibly succeed.

        Informational only: the retry orchestrator retries everything.
        """
        return True

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "status_code": self.http_status,
            "url": self.url,
            "details": self.details,
        }


class UpstreamUnavailableError(FlareSolverrException):
    """The proxy could not be reached or reported a failure.

    Raised after the client has already destroyed its session. ``status_code``
    is the HTTP status of the proxy response (None for transport errors),
    ``proxy_status``/``proxy_message`` come from the proxy's JSON body.
    """

    http_status = 502
    code = "BAD_GATEWAY"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        command: str | None = None,
        status_code: int | None = None,
        proxy_status: str | None = None,
        proxy_message: str | None = None,
    ) -> None:
        details = {
            "command": command,
            "status_code": status_code,
            "proxy_status": proxy_status,
            "proxy_message": proxy_message,
        }
        super().__init__(message, url, details)
        self.command = command
        self.status_code = status_code
        self.proxy_status = proxy_status
        self.proxy_message = proxy_message


class ChallengeNotSolvedError(FlareSolverrException):
    """The site's anti-bot interstitial could not be bypassed."""

    http_status = 502
    code = "CHALLENGE_NOT_SOLVED"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        site: str | None = None,
        challenge_type: str | None = None,
        response_snippet: str | None = None,
        outcome: Any = None,
    ) -> None:
        details = {"site": site, "challenge_type": challenge_type}
        super().__init__(message, url, details)
        self.site = site
        self.challenge_type = challenge_type
        self.response_snippet = response_snippet
        self.outcome = outcome  # ChallengeOutcome trace, when raised by a solver


class ProviderError(FlareSolverrException):
    """Base for errors a provider raises after inspecting a successful fetch."""

    http_status = 502
    code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        provider: str | None = None,
    ) -> None:
        super().__init__(message, url, {"provider": provider})
        self.provider = provider


class NotFoundError(ProviderError):
    """The target page indicates the resource does not exist."""

    http_status = 404
    code = "NOT_FOUND"

    @property
    def is_retryable(self) -> bool:
        return False


class InvalidInputError(ProviderError):
    """The caller supplied input the provider cannot use."""

    http_status = 400
    code = "VALIDATION_ERROR"

    @property
    def is_retryable(self) -> bool:
        return False
