"""
Detect-only interstitials.

Some protections (Cloudflare's "Just a moment..." page) are meant to be
cleared by FlareSolverr itself. If one still shows up in a returned body
there is nothing left to POST; the only useful move is to fail so the retry
layer starts over with a fresh session.
"""

import re
from typing import TYPE_CHECKING

from .base import ChallengeSolver, VerificationResult

if TYPE_CHECKING:
    from ..client import FlareSolverrClient

CLOUDFLARE_PATTERNS = [
    r"just a moment",
    r"challenge-platform",
    r"cf-browser-verification",
    r"_cf_chl_opt",
    r"checking your browser",
]


class InterstitialDetector(ChallengeSolver):
    """Recognizes an interstitial but has no handshake to offer."""

    challenge_type = "interstitial"

    def __init__(self, name: str, patterns: list[str]) -> None:
        if not patterns:
            raise ValueError("InterstitialDetector needs at least one pattern")
        self.name = name
        self._regex = re.compile("|".join(patterns), re.IGNORECASE)

    def detect(self, body: str) -> bool:
        return bool(body) and self._regex.search(body) is not None

    async def verify(self, client: "FlareSolverrClient") -> VerificationResult:
        return VerificationResult(success=False, detail=f"{self.name} interstitial was not cleared by the proxy")


def cloudflare_detector(name: str = "cloudflare") -> InterstitialDetector:
    detector = InterstitialDetector(name, CLOUDFLARE_PATTERNS)
    detector.challenge_type = "cloudflare"
    return detector
