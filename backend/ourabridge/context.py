"""
Bridge Context
==============
The process-wide collaborators (settings, storage, HTTP, watch channel,
clock) bundled into one object that is created at startup and handed to
OAuthManager and FetchCoordinator. Tests build one with fakes in place
of the clock and the watch channel.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Awaitable, Callable

from ourabridge.config import Settings
from ourabridge.db.storage import LocalStorage, ScoreCache, TokenStore
from ourabridge.services.http_client import HttpClient
from ourabridge.services.watch_channel import (
    HttpWatchChannel,
    OutboxWatchChannel,
    WatchChannel,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BridgeContext:
    settings: Settings
    store: TokenStore
    cache: ScoreCache
    http: HttpClient
    channel: WatchChannel
    now: Callable[[], datetime] = _utcnow
    today: Callable[[], date] = date.today
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)


def build_context(settings: Settings) -> BridgeContext:
    storage = LocalStorage(settings.state_path)
    if settings.watch_relay_url:
        channel: WatchChannel = HttpWatchChannel(
            settings.watch_relay_url, timeout=settings.http_timeout_seconds
        )
    else:
        channel = OutboxWatchChannel(maxlen=settings.watch_outbox_size)
    return BridgeContext(
        settings=settings,
        store=TokenStore(storage),
        cache=ScoreCache(storage),
        http=HttpClient(timeout=settings.http_timeout_seconds),
        channel=channel,
    )
