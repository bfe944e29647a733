"""
Credential and Fetch Window Models
==================================
The persisted OAuth credential and the date range every refresh cycle
requests from Oura.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from pydantic import BaseModel

# Treat the token as expired this long before it actually expires
EXPIRY_MARGIN = timedelta(seconds=60)

# Days of history before today, plus one day ahead for device/server timezone skew
WINDOW_DAYS_BACK = 7
WINDOW_DAYS_AHEAD = 1


class Credential(BaseModel):
    """OAuth state for the single linked Oura account. Any field may be absent."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        """True if no expiry is stored or *now* is within the safety margin of it."""
        if self.expires_at is None:
            return True
        return now > self.expires_at - EXPIRY_MARGIN


class FetchWindow(BaseModel):
    """Inclusive calendar-date range: seven days ago through tomorrow."""

    start_date: date
    end_date: date

    @classmethod
    def ending_today(cls, today: date) -> FetchWindow:
        return cls(
            start_date=today - timedelta(days=WINDOW_DAYS_BACK),
            end_date=today + timedelta(days=WINDOW_DAYS_AHEAD),
        )

    @property
    def today(self) -> date:
        return self.end_date - timedelta(days=WINDOW_DAYS_AHEAD)

    def as_params(self) -> dict[str, str]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
        }
