"""
AJAX Verification Challenge

Sites like Coleka answer unverified visitors with a "Simple vérification"
page whose button fires an XHR POST to ``/verify/ajax.php``:

    POST {base_url}/verify/ajax.php
    Content-Type: application/x-www-form-urlencoded
    X-Requested-With: XMLHttpRequest
    Referer: {base_url}/verify/?lang=fr

    lang=fr&token=<current timestamp in ms>

A ``{"success": true}`` reply unlocks the session's cookies.
"""

import json
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from .base import ChallengeSolver, VerificationResult

if TYPE_CHECKING:
    from ..client import FlareSolverrClient

logger = logging.getLogger(__name__)


class AjaxVerificationConfig(BaseModel):
    """Per-site settings for an AJAX verification handshake."""

    name: str
    base_url: str
    markers: list[str] = Field(min_length=1)
    verify_path: str = "/verify/ajax.php"
    referer_path: str = "/verify/"
    lang: str = "fr"
    max_timeout_ms: int = 60000
    wait_seconds: int = 2

    @property
    def verify_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.verify_path}"

    @property
    def referer(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.referer_path}?lang={self.lang}"


class AjaxVerificationSolver(ChallengeSolver):
    """Marker detection + one form-encoded XHR POST."""

    challenge_type = "ajax_verification"

    def __init__(
        self,
        config: AjaxVerificationConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.name = config.name
        self._clock = clock

    def detect(self, body: str) -> bool:
        if not body:
            return False
        return any(marker in body for marker in self.config.markers)

    def build_payload(self) -> str:
        token = int(self._clock() * 1000)
        return f"lang={self.config.lang}&token={token}"

    def build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/x-www-form-urlencoded",
            "X-Requested-With": "XMLHttpRequest",
            "Referer": self.config.referer,
        }

    async def verify(self, client: "FlareSolverrClient") -> VerificationResult:
        response_text = await client.post(
            self.config.verify_url,
            self.build_payload(),
            headers=self.build_headers(),
            max_timeout_ms=self.config.max_timeout_ms,
            wait_seconds=self.config.wait_seconds,
        )
        logger.debug(f"[{self.name}] Verify response: {response_text[:200]}")
        return self.parse_response(response_text)

    @staticmethod
    def parse_response(text: str) -> VerificationResult:
        """Decide whether the verification reply signals success.

        A JSON object is judged by its ``success`` flag. Anything else needs
        a visible ``"success"``/``true`` pair to count as solved.
        """
        snippet = text[:200] if text else ""
        try:
            payload = json.loads(text)
        except (TypeError, ValueError):
            payload = None

        if isinstance(payload, dict):
            if payload.get("success"):
                return VerificationResult(success=True, detail=snippet)
            return VerificationResult(success=False, detail=str(payload.get("error") or snippet or "success=false"))

        # FlareSolverr often wraps JSON replies in <html><body><pre>...</pre>
        if text and '"success"' in text and "true" in text:
            return VerificationResult(success=True, detail=snippet)

        return VerificationResult(success=False, detail=snippet or "empty response")


COLEKA_BASE_URL = "https://www.coleka.com"
COLEKA_MARKERS = ["Simple vérification", "Visiter COLEKA", "verifyBtn"]


def coleka_solver(lang: str = "fr", clock: Callable[[], float] = time.time) -> AjaxVerificationSolver:
    """Solver preset for coleka.com."""
    config = AjaxVerificationConfig(
        name="coleka",
        base_url=COLEKA_BASE_URL,
        markers=COLEKA_MARKERS,
        lang=lang,
    )
    return AjaxVerificationSolver(config, clock=clock)
