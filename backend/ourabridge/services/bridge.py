"""
Bridge Service
==============
Lifecycle glue between the watch, the OAuth redirect page and the refresh
cycle.

Events:
- on_ready(): replay cached scores, then refresh
- run_forever(): on_ready() in the background, then refresh periodically
- handle_inbound(): the watch sent REQUEST_SCORES=1
- handle_webview_closed() / handle_authorization_code(): the user finished
  the Oura consent screen

Cycles are not deduplicated: a REQUEST_SCORES arriving while the periodic
cycle is in flight starts a second, independent cycle.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Mapping, Optional
from urllib.parse import unquote

from ourabridge.config import get_settings
from ourabridge.context import BridgeContext, build_context
from ourabridge.models.snapshot import ScoreSnapshot
from ourabridge.services.fetch_coordinator import (
    APP_ENDPOINTS,
    WATCHFACE_ENDPOINTS,
    CycleResult,
    FetchCoordinator,
)
from ourabridge.services.oauth import OAuthManager
from ourabridge.services.watch_channel import REQUEST_SCORES, encode_snapshot

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Simulator data
# ---------------------------------------------------------------------------

MOCK_SNAPSHOT = ScoreSnapshot(
    sleep_score=88,
    readiness_score=72,
    activity_score=65,
    sleep_total=432,  # 7h 12m
    sleep_in_bed=480,
    sleep_efficiency=90,
    sleep_hr=58,
    readiness_hr=58,
    readiness_hrv=45,
    readiness_temp=-2,  # -0.2 °C
    readiness_resp=158,  # 15.8 breaths/min
    activity_cal=320,
    activity_goal_cal=500,
    activity_burn=2100,
    activity_time=45,
    activity_steps=8432,
    sleep_history=[75, 82, 90, 68, 85, 79, 88],
    readiness_history=[80, 65, 72, 78, 60, 85, 72],
    activity_history=[55, 70, 45, 80, 62, 75, 65],
    stress_high_history=[25, 40, 30, 15, 45, 35, 20],
    stress_restore_history=[60, 45, 55, 70, 35, 50, 65],
)

_CANCELLED = "CANCELLED"


def parse_webview_response(raw: Optional[str]) -> Optional[str]:
    """Extract the auth code from the redirect page's URL-encoded JSON payload."""
    if not raw or raw == _CANCELLED:
        return None
    try:
        payload = json.loads(unquote(raw))
    except ValueError as exc:
        logger.warning("webviewclosed parse error: %s", exc)
        return None
    if not isinstance(payload, dict):
        return None
    code = payload.get("code")
    return code if isinstance(code, str) and code else None


class BridgeService:
    """Phone-side bridge for one linked account and one watch."""

    def __init__(self, context: BridgeContext) -> None:
        self._ctx = context
        self._settings = context.settings
        watchface = self._settings.variant == "watchface"
        self.oauth = OAuthManager(context)
        self.coordinator = FetchCoordinator(
            context,
            self.oauth,
            endpoints=WATCHFACE_ENDPOINTS if watchface else APP_ENDPOINTS,
            headline_only=watchface,
        )

    def _encode(self, snapshot: ScoreSnapshot) -> dict:
        return encode_snapshot(snapshot, headline_only=self._settings.variant == "watchface")

    @property
    def context(self) -> BridgeContext:
        return self._ctx

    # ---- Refresh ---------------------------------------------------------

    async def refresh_scores(self) -> Optional[CycleResult]:
        if self._settings.mock_data:
            logger.info("Simulator mode — sending mock data.")
            await self._ctx.channel.send(self._encode(MOCK_SNAPSHOT))
            return None
        return await self.oauth.with_valid_token(self.coordinator.run_cycle)

    async def send_cached_scores(self) -> bool:
        if not self._settings.cache_scores:
            return False
        cached = self._ctx.cache.get()
        if cached is None:
            return False
        logger.info(
            "Sending cached scores — Sleep: %d, Readiness: %d, Activity: %d",
            cached.sleep_score,
            cached.readiness_score,
            cached.activity_score,
        )
        return await self._ctx.channel.send(self._encode(cached))

    async def run_forever(self) -> None:
        """The ready cycle, then the periodic loop. Failures are logged, never raised."""
        try:
            await self.on_ready()
        except Exception:
            logger.exception("Startup refresh cycle failed")
        await self.run_periodic()

    async def run_periodic(self) -> None:
        interval = self._settings.refresh_interval_minutes * 60
        while True:
            await self._ctx.sleep(interval)
            try:
                await self.refresh_scores()
            except Exception:
                logger.exception("Periodic refresh cycle failed")

    # ---- Events ----------------------------------------------------------

    async def on_ready(self) -> None:
        logger.info("Bridge ready.")
        if not self._settings.mock_data:
            await self.send_cached_scores()
        await self.refresh_scores()

    async def handle_inbound(self, payload: Mapping[str, int]) -> bool:
        """Returns True if the payload triggered a refresh cycle."""
        if not payload.get(REQUEST_SCORES):
            return False
        if not self._settings.mock_data:
            await self.send_cached_scores()
        await self.refresh_scores()
        return True

    async def handle_authorization_code(self, code: str) -> bool:
        logger.info("Received auth code — exchanging for tokens.")
        if not await self.oauth.exchange_code(code):
            await self.oauth.signal_unauthorized()
            return False
        await self.refresh_scores()
        return True

    async def handle_webview_closed(self, raw: Optional[str]) -> Optional[bool]:
        """None when the webview returned no code (cancelled or unparsable)."""
        code = parse_webview_response(raw)
        if code is None:
            return None
        return await self.handle_authorization_code(code)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_default_service: BridgeService | None = None


def get_bridge_service() -> BridgeService:
    global _default_service
    if _default_service is None:
        _default_service = BridgeService(build_context(get_settings()))
    return _default_service


def start_periodic(service: BridgeService) -> asyncio.Task:
    return asyncio.create_task(service.run_forever())
