"""
Watch Channel
=============
Wire format and transports for the bounded key → integer messages the
watch understands.

Scalars use named keys (AUTH_STATUS, SLEEP_SCORE, ...). Each 7-day history
occupies seven integer keys starting at a fixed base id (SLEEP 10000,
READINESS 10007, ...), which the watch addresses as SLEEP_HISTORY[0..6].
"""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import Mapping, Optional, Protocol, Union

import httpx

from ourabridge.models.snapshot import HISTORY_LENGTH, ScoreSnapshot

logger = logging.getLogger(__name__)

MessageKey = Union[str, int]
WatchMessage = dict[MessageKey, int]

AUTH_STATUS = "AUTH_STATUS"
REQUEST_SCORES = "REQUEST_SCORES"

HEADLINE_KEYS: dict[str, str] = {
    "sleep_score": "SLEEP_SCORE",
    "readiness_score": "READINESS_SCORE",
    "activity_score": "ACTIVITY_SCORE",
}

DETAIL_KEYS: dict[str, str] = {
    "sleep_total": "SLEEP_TOTAL",
    "sleep_in_bed": "SLEEP_IN_BED",
    "sleep_efficiency": "SLEEP_EFFICIENCY",
    "sleep_hr": "SLEEP_HR",
    "readiness_hr": "READINESS_HR",
    "readiness_hrv": "READINESS_HRV",
    "readiness_temp": "READINESS_TEMP",
    "readiness_resp": "READINESS_RESP",
    "activity_cal": "ACTIVITY_CAL",
    "activity_goal_cal": "ACTIVITY_GOAL_CAL",
    "activity_burn": "ACTIVITY_BURN",
    "activity_time": "ACTIVITY_TIME",
    "activity_steps": "ACTIVITY_STEPS",
}

# field -> (base message id, name the watch uses for the array key)
HISTORY_KEYS: dict[str, tuple[int, str]] = {
    "sleep_history": (10000, "SLEEP_HISTORY"),
    "readiness_history": (10007, "READINESS_HISTORY"),
    "activity_history": (10014, "ACTIVITY_HISTORY"),
    "stress_high_history": (10021, "STRESS_HIGH_HISTORY"),
    "stress_restore_history": (10028, "STRESS_RESTORE_HISTORY"),
}

MAX_MESSAGE_KEYS = 1 + len(HEADLINE_KEYS) + len(DETAIL_KEYS) + HISTORY_LENGTH * len(HISTORY_KEYS)

_NAMED_SLOT = re.compile(r"^([A-Z_]+)\[(\d)\]$")


# ---------------------------------------------------------------------------
# Encoding / decoding
# ---------------------------------------------------------------------------


def unauthorized_message() -> WatchMessage:
    return {AUTH_STATUS: 0}


def encode_snapshot(snapshot: ScoreSnapshot, headline_only: bool = False) -> WatchMessage:
    """Flatten a snapshot into one watch message."""
    message: WatchMessage = {AUTH_STATUS: 1 if snapshot.authorized else 0}
    for field, key in HEADLINE_KEYS.items():
        message[key] = getattr(snapshot, field)
    if headline_only:
        return message

    for field, key in DETAIL_KEYS.items():
        message[key] = getattr(snapshot, field)
    for field, (base, _) in HISTORY_KEYS.items():
        for i, value in enumerate(getattr(snapshot, field)):
            message[base + i] = value
    return message


def _normalise_key(key: MessageKey) -> MessageKey:
    """Map JSON-stringified ids and SLEEP_HISTORY[i] names onto integer ids."""
    if isinstance(key, int):
        return key
    if key.isdigit():
        return int(key)
    match = _NAMED_SLOT.match(key)
    if match:
        for base, name in HISTORY_KEYS.values():
            if name == match.group(1):
                return base + int(match.group(2))
    return key


def decode_message(message: Mapping[MessageKey, int]) -> Optional[ScoreSnapshot]:
    """Rebuild a snapshot on the receiving side. None for an unauthorized message."""
    normalised = {_normalise_key(k): v for k, v in message.items()}
    if normalised.get(AUTH_STATUS) != 1:
        return None

    fields: dict = {"authorized": True}
    for field, key in {**HEADLINE_KEYS, **DETAIL_KEYS}.items():
        if key in normalised:
            fields[field] = int(normalised[key])
    for field, (base, _) in HISTORY_KEYS.items():
        slots = [normalised.get(base + i) for i in range(HISTORY_LENGTH)]
        if all(slot is not None for slot in slots):
            fields[field] = [int(slot) for slot in slots]
    return ScoreSnapshot(**fields)


def ensure_bounded(message: Mapping[MessageKey, int]) -> None:
    if len(message) > MAX_MESSAGE_KEYS:
        raise ValueError(f"watch message has {len(message)} keys, limit is {MAX_MESSAGE_KEYS}")
    for key, value in message.items():
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"watch message value for {key!r} is not an integer")


def to_json_message(message: Mapping[MessageKey, int]) -> dict[str, int]:
    return {str(k): v for k, v in message.items()}


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------


class WatchChannel(Protocol):
    async def send(self, message: WatchMessage) -> bool:
        """Deliver one message atomically. Returns False if delivery failed."""
        ...


class OutboxWatchChannel:
    """Keeps outbound messages in memory until the peer polls for them."""

    def __init__(self, maxlen: int = 16) -> None:
        self._outbox: deque[WatchMessage] = deque(maxlen=maxlen)

    async def send(self, message: WatchMessage) -> bool:
        ensure_bounded(message)
        self._outbox.append(dict(message))
        return True

    def drain(self) -> list[WatchMessage]:
        messages = list(self._outbox)
        self._outbox.clear()
        return messages


class HttpWatchChannel:
    """POSTs each message as JSON to a relay that forwards it to the watch."""

    def __init__(self, relay_url: str, timeout: float = 10.0) -> None:
        self._relay_url = relay_url
        self._timeout = timeout

    async def send(self, message: WatchMessage) -> bool:
        ensure_bounded(message)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._relay_url, json=to_json_message(message))
        except httpx.HTTPError as exc:
            logger.warning("Watch message send failed: %s", exc)
            return False
        if not response.is_success:
            logger.warning("Watch message send failed: relay returned HTTP %d", response.status_code)
            return False
        logger.debug("Watch message sent (%d keys)", len(message))
        return True
