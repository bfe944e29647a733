"""
Ourabridge Configuration
========================
All environment variables in one place. Pydantic Settings validates
types at startup so a missing client secret fails fast, not on the
first token refresh at 3am.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Loaded from environment variables or a .env file."""

    # --- Oura OAuth application ---
    oura_client_id: str = ""
    oura_client_secret: str = ""
    oura_redirect_uri: str = ""
    oura_scope: str = "daily"

    # --- Oura endpoints ---
    oura_api_base_url: str = "https://api.ouraring.com"
    oura_authorize_url: str = "https://cloud.ouraring.com/oauth/authorize"

    # --- Local state (tokens + last published scores) ---
    state_path: Path = Path.home() / ".ourabridge" / "state.json"

    # --- Refresh cycle ---
    refresh_interval_minutes: int = 30
    # Token refresh attempts on transient errors (network / unparsable body)
    refresh_max_attempts: int = 3
    refresh_retry_delay_seconds: float = 5.0
    http_timeout_seconds: float = 10.0

    # --- Watch side ---
    # "app" sends scores, details and 7-day histories; "watchface" sends
    # the three headline scores only.
    variant: Literal["app", "watchface"] = "app"
    cache_scores: bool = True
    # Simulator: publish demo scores, never call Oura.
    mock_data: bool = False
    # When unset, messages queue in the in-process outbox for the peer to poll.
    watch_relay_url: Optional[str] = None
    watch_outbox_size: int = 16

    # --- App settings ---
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def token_url(self) -> str:
        return f"{self.oura_api_base_url}/oauth/token"

    @property
    def usercollection_url(self) -> str:
        return f"{self.oura_api_base_url}/v2/usercollection"


@lru_cache
def get_settings() -> Settings:
    return Settings()
