"""
Challenge Solvers - Base Strategy

Defines the interface every per-site anti-bot handshake implements. The
shape of the handshake is the same everywhere:

    UNKNOWN -> CHALLENGE_DETECTED -> VERIFYING -> SOLVED | FAILED

Only the detection markers and the verification request differ per site,
so the client and the retry layer stay site-agnostic.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from ..exceptions import ChallengeNotSolvedError

if TYPE_CHECKING:
    from ..client import FlareSolverrClient

logger = logging.getLogger(__name__)


class ChallengeState(str, Enum):
    """Where a page stands in the anti-bot handshake."""

    UNKNOWN = "unknown"
    CHALLENGE_DETECTED = "challenge_detected"
    VERIFYING = "verifying"
    SOLVED = "solved"
    FAILED = "failed"


_TRANSITIONS: dict[ChallengeState, set[ChallengeState]] = {
    ChallengeState.UNKNOWN: {ChallengeState.CHALLENGE_DETECTED},
    ChallengeState.CHALLENGE_DETECTED: {ChallengeState.VERIFYING},
    ChallengeState.VERIFYING: {ChallengeState.SOLVED, ChallengeState.FAILED},
    ChallengeState.SOLVED: set(),
    ChallengeState.FAILED: set(),
}


@dataclass
class ChallengeOutcome:
    """Trace of one handshake."""

    state: ChallengeState = ChallengeState.UNKNOWN
    transitions: list[ChallengeState] = field(default_factory=lambda: [ChallengeState.UNKNOWN])
    detail: str | None = None

    @property
    def solved(self) -> bool:
        return self.state is ChallengeState.SOLVED

    def advance(self, new_state: ChallengeState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Illegal challenge transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.transitions.append(new_state)


@dataclass
class VerificationResult:
    """What a site-specific verification request produced."""

    success: bool
    detail: str | None = None


class ChallengeSolver(ABC):
    """Per-site anti-bot strategy.

    Subclasses implement ``detect`` and ``verify``; ``solve`` drives the state
    machine and turns a failed verification into ChallengeNotSolvedError.
    """

    name: str = "base"
    challenge_type: str = "interstitial"

    @abstractmethod
    def detect(self, body: str) -> bool:
        """True when ``body`` is the interstitial rather than real content."""
        raise NotImplementedError

    @abstractmethod
    async def verify(self, client: "FlareSolverrClient") -> VerificationResult:
        """Issue the site's verification request through ``client``.

        Upstream errors are not caught here; the client has already
        destroyed its session and the error must keep its classification.
        """
        raise NotImplementedError

    def inspect(self, body: str) -> ChallengeState:
        return ChallengeState.CHALLENGE_DETECTED if self.detect(body) else ChallengeState.UNKNOWN

    async def solve(self, client: "FlareSolverrClient", url: str | None = None) -> ChallengeOutcome:
        """Run the handshake once. No internal retry.

        Raises:
            ChallengeNotSolvedError: verification came back negative
            UpstreamUnavailableError: the proxy failed during verification
        """
        outcome = ChallengeOutcome()
        outcome.advance(ChallengeState.CHALLENGE_DETECTED)
        logger.info(f"[{self.name}] Solving anti-bot challenge...")

        outcome.advance(ChallengeState.VERIFYING)
        result = await self.verify(client)
        outcome.detail = result.detail

        if result.success:
            outcome.advance(ChallengeState.SOLVED)
            logger.info(f"[{self.name}] Challenge solved")
            return outcome

        outcome.advance(ChallengeState.FAILED)
        logger.warning(f"[{self.name}] Challenge failed: {result.detail or 'unknown'}")
        raise ChallengeNotSolvedError(
            "Anti-bot protection not bypassed",
            url=url,
            site=self.name,
            challenge_type=self.challenge_type,
            response_snippet=result.detail,
            outcome=outcome,
        )


class NoChallenge(ChallengeSolver):
    """For sites that never serve an interstitial."""

    name = "none"
    challenge_type = "none"

    def detect(self, body: str) -> bool:
        return False

    async def verify(self, client: "FlareSolverrClient") -> VerificationResult:
        return VerificationResult(success=True)
