"""
Score Snapshot Schema
=====================
The payload published to the watch once per refresh cycle: headline
scores, detail metrics and five 7-day histories, all as integers.

Sentinels: -1 means "no data" for scores and most metrics, 0 for the stress
duration histories, -100 for temperature deviation (0 is a real reading).
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

HISTORY_LENGTH = 7

SCORE_SENTINEL = -1
DURATION_SENTINEL = 0
TEMPERATURE_SENTINEL = -100


def _empty_history(sentinel: int) -> list[int]:
    return [sentinel] * HISTORY_LENGTH


class ScoreSnapshot(BaseModel):
    """One complete, authorized set of scores for the watch."""

    authorized: bool = True

    # --- Headline scores (always index 6 of the matching history) ---
    sleep_score: int = SCORE_SENTINEL
    readiness_score: int = SCORE_SENTINEL
    activity_score: int = SCORE_SENTINEL

    # --- Sleep details ---
    sleep_total: int = SCORE_SENTINEL  # minutes
    sleep_in_bed: int = SCORE_SENTINEL  # minutes
    sleep_efficiency: int = SCORE_SENTINEL  # percent
    sleep_hr: int = SCORE_SENTINEL  # bpm

    # --- Readiness details ---
    readiness_hr: int = SCORE_SENTINEL  # bpm
    readiness_hrv: int = SCORE_SENTINEL  # ms
    readiness_temp: int = TEMPERATURE_SENTINEL  # deviation x10
    readiness_resp: int = SCORE_SENTINEL  # breaths/min x10

    # --- Activity details ---
    activity_cal: int = SCORE_SENTINEL
    activity_goal_cal: int = SCORE_SENTINEL
    activity_burn: int = SCORE_SENTINEL
    activity_time: int = SCORE_SENTINEL  # minutes
    activity_steps: int = SCORE_SENTINEL

    # --- 7-day histories, index 0 = six days ago, index 6 = today ---
    sleep_history: list[int] = Field(default_factory=lambda: _empty_history(SCORE_SENTINEL))
    readiness_history: list[int] = Field(default_factory=lambda: _empty_history(SCORE_SENTINEL))
    activity_history: list[int] = Field(default_factory=lambda: _empty_history(SCORE_SENTINEL))
    stress_high_history: list[int] = Field(default_factory=lambda: _empty_history(DURATION_SENTINEL))
    stress_restore_history: list[int] = Field(
        default_factory=lambda: _empty_history(DURATION_SENTINEL)
    )

    @field_validator(
        "sleep_history",
        "readiness_history",
        "activity_history",
        "stress_high_history",
        "stress_restore_history",
    )
    @classmethod
    def _seven_slots(cls, value: list[int]) -> list[int]:
        if len(value) != HISTORY_LENGTH:
            raise ValueError(f"history must have exactly {HISTORY_LENGTH} slots, got {len(value)}")
        return value
