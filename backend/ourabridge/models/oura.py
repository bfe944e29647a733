"""
Oura API Response Models
========================
Pydantic shapes for parsing raw Oura REST API v2 JSON responses.
Only the fields the watch message uses are declared; everything else
Oura returns is ignored.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel


class OuraDailySleepItem(BaseModel):
    """One day of Oura daily_sleep summary data."""

    day: date
    score: Optional[int] = None


class OuraDailyReadinessItem(BaseModel):
    """One day of Oura daily_readiness summary data."""

    day: date
    score: Optional[int] = None
    # degrees Celsius relative to the user's baseline
    temperature_deviation: Optional[float] = None


class OuraDailyActivityItem(BaseModel):
    """One day of Oura daily_activity summary data."""

    day: date
    score: Optional[int] = None
    steps: Optional[int] = None
    active_calories: Optional[int] = None
    target_calories: Optional[int] = None
    total_calories: Optional[int] = None
    # seconds
    high_activity_time: Optional[int] = None
    medium_activity_time: Optional[int] = None


class OuraDailyStressItem(BaseModel):
    """One day of Oura daily_stress data. Durations are in seconds."""

    day: date
    stress_high: Optional[int] = None
    recovery_high: Optional[int] = None


class OuraSleepPeriod(BaseModel):
    """One sleep period from the verbose /sleep endpoint (raw metrics)."""

    day: date
    # seconds
    total_sleep_duration: Optional[int] = None
    time_in_bed: Optional[int] = None
    efficiency: Optional[int] = None
    average_heart_rate: Optional[float] = None
    average_hrv: Optional[float] = None
    average_breath: Optional[float] = None


class OuraTokenResponse(BaseModel):
    """Response from the Oura OAuth /oauth/token endpoint.

    Oura does not always rotate the refresh token, and expires_in may be
    missing on some refresh responses.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # seconds until expiry
