#!/usr/bin/env python3
"""
FlareSolverr Core - Live Validation Script

Runs the provider workflow against a real FlareSolverr instance:
1. Proxy health check (sessions.list)
2. Session creation + page fetch
3. Anti-bot handshake when the page is challenged (Coleka preset)
4. Session destroy on exit

Usage:
    # Start the proxy first:
    docker run -d -p 8191:8191 ghcr.io/flaresolverr/flaresolverr:latest

    # Health only:
    python scripts/check_flaresolverr.py --health

    # Fetch a Coleka page (AJAX verification handled automatically):
    python scripts/check_flaresolverr.py --site coleka --url "https://www.coleka.com/fr/search?q=lego"

    # Fetch any page, failing on a Cloudflare interstitial:
    python scripts/check_flaresolverr.py --site cloudflare --url https://example.com --verbose
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add repo root to path for local development
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.app.core.config import settings
from src.app.core.logger import configure_logging
from src.app.services.flaresolverr import (
    COLEKA_BASE_URL,
    FlareSolverrException,
    NoChallenge,
    ScrapingProvider,
    cloudflare_detector,
    coleka_solver,
)

logger = logging.getLogger("flaresolverr_check")

SOLVERS = {
    "coleka": (coleka_solver, f"{COLEKA_BASE_URL}/fr"),
    "cloudflare": (cloudflare_detector, None),
    "none": (NoChallenge, None),
}


async def run(args: argparse.Namespace) -> int:
    factory, default_seed = SOLVERS[args.site]
    seed_url = args.seed or default_seed or args.url

    provider = ScrapingProvider.from_settings(
        args.site,
        seed_url or "about:blank",
        settings,
        solver=factory(),
        fsr_url=args.fsr_url,
    )

    try:
        health = await provider.health_check()
        logger.info(f"Health: {health}")
        if args.health or not args.url:
            return 0 if health["status"] == "healthy" else 1

        body = await provider.fetch(args.url)
        logger.info(f"Fetched {len(body)} chars from {args.url}")
        logger.info(f"Cookies: {[c.name for c in provider.client.get_cookies()]}")
        logger.debug(body[:500])
        logger.info(f"Client Stats: {provider.client.get_stats()}")
        return 0
    except FlareSolverrException as e:
        logger.error(f"FAILED: {e}")
        return 1
    finally:
        await provider.close()


def main() -> int:
    parser = argparse.ArgumentParser(
        description="FlareSolverr core live validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", type=str, help="Page to fetch through the proxy")
    parser.add_argument(
        "--site",
        type=str,
        default="none",
        choices=sorted(SOLVERS),
        help="Challenge strategy to use",
    )
    parser.add_argument("--seed", type=str, help="Seed URL for session refreshes")
    parser.add_argument("--fsr-url", type=str, default=None, help="FlareSolverr endpoint (default: FSR_URL)")
    parser.add_argument("--health", action="store_true", help="Only run the health check")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug output")
    args = parser.parse_args()

    if args.verbose:
        settings.LOG_LEVEL = "DEBUG"
    configure_logging(settings)

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
