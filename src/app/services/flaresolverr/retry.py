"""
Retry Orchestrator

Wraps a complete provider workflow (ensure session -> fetch -> solve
challenge -> re-fetch -> extract) in a bounded loop with linear backoff:

    attempt 1 fails -> sleep 1 * base_delay
    attempt 2 fails -> sleep 2 * base_delay
    attempt 3 fails -> re-raise attempt 3's exception as-is

Every exception is retried the same way. NotFoundError and friends burn the
budget too; callers that care can catch them outside the orchestrator.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from ...core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 2.0


@dataclass
class RetryAttempt:
    """One failed attempt of a single run() call."""

    attempt_number: int
    last_error: BaseException | None = None


class RetryOrchestrator:
    """Bounded retry loop with ``attempt * base_delay`` backoff."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        name: str = "retry",
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.name = name
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: "Settings", name: str = "retry") -> "RetryOrchestrator":
        return cls(
            max_attempts=settings.FSR_MAX_RETRIES,
            base_delay=settings.FSR_RETRY_BASE_DELAY,
            name=name,
        )

    def delay_for(self, attempt_number: int) -> float:
        return attempt_number * self.base_delay

    async def run(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run ``operation`` until it succeeds or the budget is spent.

        Raises:
            The exception of the final attempt, unchanged.
        """
        attempts: list[RetryAttempt] = []

        for attempt_number in range(1, self.max_attempts + 1):
            logger.debug(f"[{self.name}] Attempt {attempt_number}/{self.max_attempts}")
            try:
                return await operation(*args, **kwargs)
            except Exception as e:
                attempts.append(RetryAttempt(attempt_number=attempt_number, last_error=e))
                logger.warning(f"[{self.name}] Attempt {attempt_number}/{self.max_attempts} failed: {e}")

                if attempt_number >= self.max_attempts:
                    history = ", ".join(f"#{a.attempt_number}: {type(a.last_error).__name__}" for a in attempts)
                    logger.error(f"[{self.name}] Giving up after {attempt_number} attempts ({history})")
                    raise

                await self._sleep(self.delay_for(attempt_number))

        # Unreachable: the loop either returns or raises
        raise RuntimeError("retry loop exited without a result")
