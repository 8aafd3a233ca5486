"""
Scraping Provider Workflow

The workflow every FlareSolverr-backed provider runs, wrapped in the retry
orchestrator:

    1. ensure_session(seed_url)
    2. GET the target
    3. if the body is a challenge: solve it, pause, GET the target again
    4. hand the body to the provider's extractor

Extractors raise NotFoundError / InvalidInputError themselves; the workflow
only knows about transport and challenge failures.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from .challenges import ChallengeSolver, NoChallenge
from .client import FlareSolverrClient
from .exceptions import ChallengeNotSolvedError
from .retry import RetryOrchestrator

if TYPE_CHECKING:
    from ...core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SETTLE_DELAY_SECONDS = 2.0


class ScrapingProvider:
    """One provider = one long-lived client + one challenge strategy.

    Usage:
        provider = ScrapingProvider.from_settings(
            "coleka", "https://www.coleka.com/fr", settings, solver=coleka_solver()
        )
        html = await provider.fetch("https://www.coleka.com/fr/search?q=lego")
        ...
        await provider.close()
    """

    def __init__(
        self,
        name: str,
        client: FlareSolverrClient,
        seed_url: str,
        solver: ChallengeSolver | None = None,
        retry: RetryOrchestrator | None = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.client = client
        self.seed_url = seed_url
        self.solver = solver or NoChallenge()
        self.retry = retry or RetryOrchestrator(name=name)
        self.settle_delay = settle_delay
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        name: str,
        seed_url: str,
        settings: "Settings",
        solver: ChallengeSolver | None = None,
        **client_kwargs: Any,
    ) -> "ScrapingProvider":
        """Build the provider and its client from application settings."""
        client = FlareSolverrClient(name, settings, **client_kwargs)
        return cls(
            name=name,
            client=client,
            seed_url=seed_url,
            solver=solver,
            retry=RetryOrchestrator.from_settings(settings, name=name),
            settle_delay=settings.FSR_CHALLENGE_SETTLE_DELAY,
        )

    async def fetch(
        self,
        url: str,
        *,
        wait_seconds: int | None = None,
        extract: Callable[[str], T] | None = None,
    ) -> Any:
        """Fetch ``url`` with session handling, challenge solving and retries.

        Returns the page body, or ``extract(body)`` when an extractor is given.
        After the retry budget is spent the last error is raised unchanged.
        """
        return await self.retry.run(self._fetch_once, url, wait_seconds, extract)

    async def _fetch_once(
        self,
        url: str,
        wait_seconds: int | None,
        extract: Callable[[str], T] | None,
    ) -> Any:
        await self.client.ensure_session(self.seed_url)

        body = await self.client.get(url, wait_seconds=wait_seconds)

        if self.solver.detect(body):
            logger.debug(f"[{self.name}] Challenge detected on {url}")
            await self.solver.solve(self.client, url=url)

            # Let the proxy's cookie jar settle before asking again
            await self._sleep(self.settle_delay)

            body = await self.client.get(url, wait_seconds=wait_seconds)
            if self.solver.detect(body):
                raise ChallengeNotSolvedError(
                    "Challenge still present after verification",
                    url=url,
                    site=self.solver.name,
                    challenge_type=self.solver.challenge_type,
                    response_snippet=body[:200],
                )

        if extract is not None:
            return extract(body)
        return body

    async def health_check(self) -> dict[str, Any]:
        """Provider health, based on the proxy's availability."""
        health = await self.client.health_check()
        return {
            "status": "healthy" if health.healthy else "unhealthy",
            "provider": self.name,
            "flaresolverr": health.to_dict(),
        }

    async def close(self) -> None:
        await self.client.close()
