"""
Oura OAuth Manager
==================
OAuth2 token lifecycle for the single linked Oura account.

Responsibilities:
- authorization_url(): consent page the user opens to link their ring
- exchange_code(): trade the redirect's auth code for access + refresh tokens
- refresh(): rotate the access token, retrying transient failures
- with_valid_token(): run a callback with a non-expired access token

Refresh failure policy:
- Network errors and unparsable bodies are transient. Tokens are kept and
  the refresh is retried (refresh_max_attempts total, refresh_retry_delay_seconds
  apart). If every attempt fails the cycle is abandoned silently; the next
  periodic cycle tries again with the same refresh token.
- Anything else (HTTP 4xx/5xx, a 2xx without an access_token, no refresh
  token stored) is a definitive rejection: both tokens are cleared and the
  watch gets AUTH_STATUS=0 so it can prompt for re-authorization.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar
from urllib.parse import urlencode

from pydantic import ValidationError

from ourabridge.context import BridgeContext
from ourabridge.models.credential import Credential
from ourabridge.models.oura import OuraTokenResponse
from ourabridge.services.http_client import ErrorKind, HttpError, HttpResult
from ourabridge.services.watch_channel import unauthorized_message

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshOutcome(str, Enum):
    SUCCESS = "success"
    # Tokens kept; try again on the next cycle
    TRANSIENT_FAILURE = "transient_failure"
    # Tokens cleared, AUTH_STATUS=0 already sent
    REJECTED = "rejected"


class OAuthManager:
    """Owns every write to the TokenStore."""

    def __init__(self, context: BridgeContext) -> None:
        self._ctx = context
        self._settings = context.settings

    # ---- Authorization ---------------------------------------------------

    def authorization_url(self) -> str:
        params = {
            "response_type": "code",
            "client_id": self._settings.oura_client_id,
            "redirect_uri": self._settings.oura_redirect_uri,
            "scope": self._settings.oura_scope,
        }
        return f"{self._settings.oura_authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> bool:
        """
        Trade an OAuth authorisation code for access + refresh tokens.
        Returns False, leaving stored state untouched, on any failure.
        """
        result = await self._ctx.http.post(
            self._settings.token_url,
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self._settings.oura_client_id,
                "client_secret": self._settings.oura_client_secret,
                "redirect_uri": self._settings.oura_redirect_uri,
            },
        )
        token = _parse_token(result)
        if token is None:
            logger.warning("Token exchange failed: %s", result.error or "no access_token")
            return False

        self._store_token(token)
        logger.info("Tokens stored. Expires in %ss", token.expires_in)
        return True

    # ---- Refresh ---------------------------------------------------------

    async def refresh(self, attempt: int = 1) -> RefreshOutcome:
        """Use the stored refresh token to obtain a new access token."""
        refresh_token = self._ctx.store.get().refresh_token
        if not refresh_token:
            logger.info("No refresh token stored — user must re-authorize.")
            await self._reject()
            return RefreshOutcome.REJECTED

        result = await self._ctx.http.post(
            self._settings.token_url,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self._settings.oura_client_id,
                "client_secret": self._settings.oura_client_secret,
            },
        )
        token = _parse_token(result)
        if token is not None:
            self._store_token(token)
            logger.info("Token refreshed successfully.")
            return RefreshOutcome.SUCCESS

        logger.warning(
            "Token refresh failed (attempt %d): %s", attempt, result.error or "no access_token"
        )
        if result.error is not None and result.error.kind.is_transient:
            if attempt < self._settings.refresh_max_attempts:
                delay = self._settings.refresh_retry_delay_seconds
                logger.info("Retrying refresh in %ss...", delay)
                await self._ctx.sleep(delay)
                return await self.refresh(attempt + 1)
            logger.info("Transient error — keeping tokens for next cycle.")
            return RefreshOutcome.TRANSIENT_FAILURE

        logger.warning("Server rejected refresh — clearing tokens.")
        await self._reject()
        return RefreshOutcome.REJECTED

    # ---- Valid token -----------------------------------------------------

    async def with_valid_token(self, fn: Callable[[str], Awaitable[T]]) -> Optional[T]:
        """
        Call *fn* with a non-expired access token, refreshing first if needed.
        Returns None without calling *fn* when no usable token is available.
        """
        credential = self._ctx.store.get()
        if not credential.access_token:
            logger.info(
                "Cannot fetch scores: %s — user must authorize.",
                HttpError(ErrorKind.NO_CREDENTIAL),
            )
            await self.signal_unauthorized()
            return None

        if credential.is_expired(self._ctx.now()):
            logger.info("Token expired — attempting refresh.")
            outcome = await self.refresh()
            if outcome is RefreshOutcome.TRANSIENT_FAILURE:
                logger.info("Refresh failed (transient) — will retry next cycle.")
                return None
            if outcome is RefreshOutcome.REJECTED:
                return None
            credential = self._ctx.store.get()

        return await fn(credential.access_token)

    async def signal_unauthorized(self) -> None:
        await self._ctx.channel.send(unauthorized_message())

    # ---- Helpers ---------------------------------------------------------

    async def _reject(self) -> None:
        self._ctx.store.clear()
        await self.signal_unauthorized()

    def _store_token(self, token: OuraTokenResponse) -> None:
        current = self._ctx.store.get()
        expires_at = current.expires_at
        if token.expires_in:
            expires_at = self._ctx.now() + timedelta(seconds=token.expires_in)
        self._ctx.store.put(
            Credential(
                access_token=token.access_token,
                # Oura may omit the refresh token when it does not rotate it
                refresh_token=token.refresh_token or current.refresh_token,
                expires_at=expires_at,
            )
        )


def _parse_token(result: HttpResult) -> Optional[OuraTokenResponse]:
    if not result.ok or not isinstance(result.data, dict):
        return None
    try:
        token = OuraTokenResponse.model_validate(result.data)
    except ValidationError:
        return None
    return token if token.access_token else None
