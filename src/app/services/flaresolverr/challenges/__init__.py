from .ajax import (
    COLEKA_BASE_URL,
    COLEKA_MARKERS,
    AjaxVerificationConfig,
    AjaxVerificationSolver,
    coleka_solver,
)
from .base import (
    ChallengeOutcome,
    ChallengeSolver,
    ChallengeState,
    NoChallenge,
    VerificationResult,
)
from .interstitial import CLOUDFLARE_PATTERNS, InterstitialDetector, cloudflare_detector

__all__ = [
    "ChallengeSolver",
    "ChallengeState",
    "ChallengeOutcome",
    "VerificationResult",
    "NoChallenge",
    "AjaxVerificationConfig",
    "AjaxVerificationSolver",
    "coleka_solver",
    "COLEKA_BASE_URL",
    "COLEKA_MARKERS",
    "InterstitialDetector",
    "cloudflare_detector",
    "CLOUDFLARE_PATTERNS",
]
