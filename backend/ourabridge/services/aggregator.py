"""
Score Aggregator
================
Pure reduction of one cycle's raw Oura records into the ScoreSnapshot the
watch displays.

Histories map each of the last seven calendar days (index 6 = today) to the
record for that day, falling back to a sentinel. Headline scores are read
from index 6 of those histories, so the number on the dial always matches
the last bar of the chart. Detail metrics come from the most recent record
of each set.

Unit conversions:
- durations in seconds → whole minutes
- temperature deviation °C → ×10 (−100 when absent; 0.0 is a real reading)
- respiration breaths/min → ×10
Rounding is half-up, matching what the watch firmware expects.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional, Sequence

from ourabridge.models.credential import FetchWindow
from ourabridge.models.oura import (
    OuraDailyActivityItem,
    OuraDailyReadinessItem,
    OuraDailySleepItem,
    OuraDailyStressItem,
    OuraSleepPeriod,
)
from ourabridge.models.snapshot import (
    DURATION_SENTINEL,
    HISTORY_LENGTH,
    SCORE_SENTINEL,
    TEMPERATURE_SENTINEL,
    ScoreSnapshot,
)


# daily_activity field -> snapshot field
_ACTIVITY_FIELDS = {
    "active_calories": "activity_cal",
    "target_calories": "activity_goal_cal",
    "total_calories": "activity_burn",
    "steps": "activity_steps",
}


@dataclass
class FetchedRecords:
    """Every record set collected in one cycle. Missing endpoints stay empty."""

    daily_sleep: list[OuraDailySleepItem] = field(default_factory=list)
    daily_readiness: list[OuraDailyReadinessItem] = field(default_factory=list)
    daily_activity: list[OuraDailyActivityItem] = field(default_factory=list)
    daily_stress: list[OuraDailyStressItem] = field(default_factory=list)
    sleep_periods: list[OuraSleepPeriod] = field(default_factory=list)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def build_history(
    records: Sequence[Any], field_name: str, today: date, default: int = SCORE_SENTINEL
) -> list[int]:
    """
    Return exactly seven values for *field_name*, index 0 = six days ago.
    Later records for the same day win. Days without a record, or whose
    record has no value for the field, get *default*.
    """
    by_day = {record.day: record for record in records}
    history: list[int] = []
    for days_ago in range(HISTORY_LENGTH - 1, -1, -1):
        record = by_day.get(today - timedelta(days=days_ago))
        value = getattr(record, field_name, None) if record is not None else None
        history.append(value if value is not None else default)
    return history


def _seconds_to_minutes(history: list[int]) -> list[int]:
    return [round_half_up(v / 60) if v > 0 else DURATION_SENTINEL for v in history]


def _latest(records: Sequence[Any]) -> Optional[Any]:
    return records[-1] if records else None


def _minutes(seconds: Optional[float]) -> int:
    return round_half_up(seconds / 60) if seconds is not None else SCORE_SENTINEL


def _rounded(value: Optional[float], scale: int = 1, sentinel: int = SCORE_SENTINEL) -> int:
    return round_half_up(value * scale) if value is not None else sentinel


def aggregate(records: FetchedRecords, window: FetchWindow) -> ScoreSnapshot:
    today = window.today

    sleep_hist = build_history(records.daily_sleep, "score", today)
    readiness_hist = build_history(records.daily_readiness, "score", today)
    activity_hist = build_history(records.daily_activity, "score", today)
    stress_high_hist = _seconds_to_minutes(
        build_history(records.daily_stress, "stress_high", today, DURATION_SENTINEL)
    )
    stress_restore_hist = _seconds_to_minutes(
        build_history(records.daily_stress, "recovery_high", today, DURATION_SENTINEL)
    )

    details: dict[str, int] = {}

    sleep = _latest(records.sleep_periods)
    if sleep is not None:
        details["sleep_total"] = _minutes(sleep.total_sleep_duration)
        details["sleep_in_bed"] = _minutes(sleep.time_in_bed)
        if sleep.efficiency is not None:
            details["sleep_efficiency"] = sleep.efficiency
        details["sleep_hr"] = _rounded(sleep.average_heart_rate)
        # Oura reports resting HR for readiness from the same sleep period
        details["readiness_hr"] = details["sleep_hr"]
        details["readiness_hrv"] = _rounded(sleep.average_hrv)
        details["readiness_resp"] = _rounded(sleep.average_breath, scale=10)

    readiness = _latest(records.daily_readiness)
    if readiness is not None:
        details["readiness_temp"] = _rounded(
            readiness.temperature_deviation, scale=10, sentinel=TEMPERATURE_SENTINEL
        )

    activity = _latest(records.daily_activity)
    if activity is not None:
        for name, target in _ACTIVITY_FIELDS.items():
            value = getattr(activity, name)
            if value is not None:
                details[target] = value
        active_seconds = (activity.high_activity_time or 0) + (activity.medium_activity_time or 0)
        details["activity_time"] = round_half_up(active_seconds / 60)

    return ScoreSnapshot(
        sleep_score=sleep_hist[-1],
        readiness_score=readiness_hist[-1],
        activity_score=activity_hist[-1],
        sleep_history=sleep_hist,
        readiness_history=readiness_hist,
        activity_history=activity_hist,
        stress_high_history=stress_high_hist,
        stress_restore_history=stress_restore_hist,
        **details,
    )

