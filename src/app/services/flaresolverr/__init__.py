# ============================================
# FLARESOLVERR - Resilient Proxy Client Core
# ============================================
#
# Session-managed access to a FlareSolverr proxy for scraping
# providers that target anti-bot protected sites.
#
# Layers:
#   FlareSolverrClient: one session + cookie jar, command executor
#   ChallengeSolver:    per-site anti-bot handshake strategy
#   RetryOrchestrator:  bounded linear-backoff retry of a workflow
#   ShutdownCoordinator: destroys sessions on exit / SIGINT / SIGTERM
#   ScrapingProvider:   ensure -> fetch -> solve -> re-fetch workflow
# ============================================

from .challenges import (
    CLOUDFLARE_PATTERNS,
    COLEKA_BASE_URL,
    COLEKA_MARKERS,
    AjaxVerificationConfig,
    AjaxVerificationSolver,
    ChallengeOutcome,
    ChallengeSolver,
    ChallengeState,
    InterstitialDetector,
    NoChallenge,
    VerificationResult,
    cloudflare_detector,
    coleka_solver,
)
from .client import DestroyOutcome, FlareSolverrClient, HealthStatus
from .exceptions import (
    ChallengeNotSolvedError,
    FlareSolverrException,
    InvalidInputError,
    NotFoundError,
    ProviderError,
    UpstreamUnavailableError,
)
from .lifecycle import ShutdownCoordinator, get_shutdown_coordinator
from .protocol import ProxyCommand, ProxyResponse, RequestCommand
from .provider import ScrapingProvider
from .retry import RetryAttempt, RetryOrchestrator
from .session import CookieData, Session, SessionStore

__all__ = [
    # Client
    "FlareSolverrClient",
    "DestroyOutcome",
    "HealthStatus",
    # Session
    "Session",
    "SessionStore",
    "CookieData",
    # Protocol
    "ProxyCommand",
    "ProxyResponse",
    "RequestCommand",
    # Challenges
    "ChallengeSolver",
    "ChallengeState",
    "ChallengeOutcome",
    "VerificationResult",
    "NoChallenge",
    "AjaxVerificationConfig",
    "AjaxVerificationSolver",
    "InterstitialDetector",
    "coleka_solver",
    "cloudflare_detector",
    "COLEKA_BASE_URL",
    "COLEKA_MARKERS",
    "CLOUDFLARE_PATTERNS",
    # Retry / lifecycle
    "RetryOrchestrator",
    "RetryAttempt",
    "ShutdownCoordinator",
    "get_shutdown_coordinator",
    # Provider
    "ScrapingProvider",
    # Exceptions
    "FlareSolverrException",
    "UpstreamUnavailableError",
    "ChallengeNotSolvedError",
    "ProviderError",
    "NotFoundError",
    "InvalidInputError",
]
