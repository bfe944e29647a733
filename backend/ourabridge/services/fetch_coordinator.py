"""
Fetch Coordinator
=================
Runs one refresh cycle: fan out to every Oura endpoint in parallel, wait
for all of them, then either publish a ScoreSnapshot or deal with a 401.

Join policy: asyncio.gather waits for every fetch, so one 401 never
discards the other endpoints' data and the retry decision sees the full
picture. Endpoints that fail for any other reason, or return malformed
data, contribute nothing and show up as sentinels.

On a 401 the coordinator refreshes the token once and re-runs the whole
cycle once. A second 401 sends AUTH_STATUS=0.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ValidationError

from ourabridge.context import BridgeContext
from ourabridge.models.credential import FetchWindow
from ourabridge.models.oura import (
    OuraDailyActivityItem,
    OuraDailyReadinessItem,
    OuraDailySleepItem,
    OuraDailyStressItem,
    OuraSleepPeriod,
)
from ourabridge.models.snapshot import ScoreSnapshot
from ourabridge.services.aggregator import FetchedRecords, aggregate
from ourabridge.services.http_client import ErrorKind
from ourabridge.services.oauth import OAuthManager, RefreshOutcome
from ourabridge.services.watch_channel import encode_snapshot

logger = logging.getLogger(__name__)

# One retry after a successful refresh, never more
MAX_CYCLE_ATTEMPTS = 2


@dataclass(frozen=True)
class Endpoint:
    path: str
    model: type[BaseModel]
    # FetchedRecords attribute the parsed records land in
    target: str


DAILY_SLEEP = Endpoint("daily_sleep", OuraDailySleepItem, "daily_sleep")
DAILY_READINESS = Endpoint("daily_readiness", OuraDailyReadinessItem, "daily_readiness")
DAILY_ACTIVITY = Endpoint("daily_activity", OuraDailyActivityItem, "daily_activity")
DAILY_STRESS = Endpoint("daily_stress", OuraDailyStressItem, "daily_stress")
SLEEP_PERIODS = Endpoint("sleep", OuraSleepPeriod, "sleep_periods")

APP_ENDPOINTS = (DAILY_SLEEP, DAILY_READINESS, DAILY_ACTIVITY, DAILY_STRESS, SLEEP_PERIODS)
WATCHFACE_ENDPOINTS = (DAILY_SLEEP, DAILY_READINESS, DAILY_ACTIVITY)


@dataclass
class EndpointResult:
    endpoint: Endpoint
    records: list = field(default_factory=list)
    unauthorized: bool = False


class CycleStatus(str, Enum):
    PUBLISHED = "published"
    # Refresh failed transiently; tokens kept for the next cycle
    ABANDONED = "abandoned"
    # AUTH_STATUS=0 sent
    UNAUTHORIZED = "unauthorized"


@dataclass
class CycleResult:
    status: CycleStatus
    snapshot: Optional[ScoreSnapshot] = None


class FetchCoordinator:
    def __init__(
        self,
        context: BridgeContext,
        oauth: OAuthManager,
        endpoints: tuple[Endpoint, ...] = APP_ENDPOINTS,
        headline_only: bool = False,
    ) -> None:
        self._ctx = context
        self._oauth = oauth
        self._endpoints = endpoints
        self._headline_only = headline_only

    async def fetch_endpoint(
        self, endpoint: Endpoint, token: str, window: FetchWindow
    ) -> EndpointResult:
        """GET one usercollection endpoint for *window*."""
        result = await self._ctx.http.get(
            f"{self._ctx.settings.usercollection_url}/{endpoint.path}",
            token,
            params=window.as_params(),
        )
        if result.error is not None:
            if result.error.kind is ErrorKind.UNAUTHORIZED:
                return EndpointResult(endpoint, unauthorized=True)
            logger.warning("Fetching %s failed: %s", endpoint.path, result.error)
            return EndpointResult(endpoint)

        items = result.data.get("data") if isinstance(result.data, dict) else None
        if not isinstance(items, list):
            logger.warning("Malformed %s response: no data list", endpoint.path)
            return EndpointResult(endpoint)
        try:
            records = [endpoint.model.model_validate(item) for item in items]
        except ValidationError as exc:
            logger.warning("Malformed %s record, ignoring endpoint: %s", endpoint.path, exc)
            return EndpointResult(endpoint)
        return EndpointResult(endpoint, records=records)

    async def fetch_all(self, token: str, window: FetchWindow) -> list[EndpointResult]:
        return list(
            await asyncio.gather(
                *(self.fetch_endpoint(endpoint, token, window) for endpoint in self._endpoints)
            )
        )

    async def run_cycle(self, token: str, attempt: int = 1) -> CycleResult:
        """Fetch, aggregate and publish; refresh-and-retry once on a 401."""
        window = FetchWindow.ending_today(self._ctx.today())
        results = await self.fetch_all(token, window)

        if any(r.unauthorized for r in results):
            return await self._handle_unauthorized(attempt)

        records = FetchedRecords()
        for r in results:
            setattr(records, r.endpoint.target, r.records)
        snapshot = aggregate(records, window)
        await self.publish(snapshot)
        return CycleResult(CycleStatus.PUBLISHED, snapshot)

    async def publish(self, snapshot: ScoreSnapshot) -> None:
        logger.info(
            "Sending — Sleep: %d, Readiness: %d, Activity: %d",
            snapshot.sleep_score,
            snapshot.readiness_score,
            snapshot.activity_score,
        )
        sent = await self._ctx.channel.send(
            encode_snapshot(snapshot, headline_only=self._headline_only)
        )
        if not sent:
            logger.warning("Scores were not delivered to the watch.")
        if self._ctx.settings.cache_scores:
            self._ctx.cache.put(snapshot)

    async def _handle_unauthorized(self, attempt: int) -> CycleResult:
        if attempt >= MAX_CYCLE_ATTEMPTS:
            logger.warning("Still unauthorized after refresh — user must re-auth.")
            await self._oauth.signal_unauthorized()
            return CycleResult(CycleStatus.UNAUTHORIZED)

        logger.info("Got 401 — attempting token refresh.")
        outcome = await self._oauth.refresh()
        if outcome is RefreshOutcome.SUCCESS:
            return await self.run_cycle(self._ctx.store.get().access_token, attempt + 1)
        if outcome is RefreshOutcome.TRANSIENT_FAILURE:
            logger.info("Refresh failed (transient) — will retry next cycle.")
            return CycleResult(CycleStatus.ABANDONED)
        # REJECTED: OAuthManager has already cleared tokens and told the watch
        return CycleResult(CycleStatus.UNAUTHORIZED)
