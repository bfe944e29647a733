"""
HTTP Client
===========
Thin async wrapper around httpx for the Oura API.

Nothing raises past this boundary: every failure comes back as an
HttpResult tagged with an ErrorKind, so callers decide what is transient
(network, unparsable body) and what the server has definitively rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    HTTP_STATUS = "http_status"
    PARSE_ERROR = "parse_error"
    NETWORK_ERROR = "network_error"
    # Never authorized; reported by OAuthManager before any request is made
    NO_CREDENTIAL = "no_credential"

    @property
    def is_transient(self) -> bool:
        return self in (ErrorKind.NETWORK_ERROR, ErrorKind.PARSE_ERROR)


@dataclass(frozen=True)
class HttpError:
    kind: ErrorKind
    status_code: Optional[int] = None

    def __str__(self) -> str:
        if self.kind is ErrorKind.HTTP_STATUS:
            return f"http_{self.status_code}"
        return self.kind.value


@dataclass(frozen=True)
class HttpResult:
    """Either parsed JSON *data* or an *error*, never both."""

    data: Any = None
    error: Optional[HttpError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, kind: ErrorKind, status_code: Optional[int] = None) -> HttpResult:
        return cls(error=HttpError(kind, status_code))


class HttpClient:
    """GET with bearer auth, POST with a form body. Both return HttpResult."""

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    async def get(
        self, url: str, bearer_token: str, params: Optional[dict] = None
    ) -> HttpResult:
        return await self._send(
            "GET",
            url,
            params=params,
            headers={"Authorization": f"Bearer {bearer_token}"},
        )

    async def post(self, url: str, form: dict[str, str]) -> HttpResult:
        return await self._send("POST", url, data=form)

    async def _send(self, method: str, url: str, **kwargs: Any) -> HttpResult:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            return HttpResult.failure(ErrorKind.NETWORK_ERROR)

        if response.status_code == httpx.codes.UNAUTHORIZED:
            return HttpResult.failure(ErrorKind.UNAUTHORIZED, response.status_code)
        # Oura answers every successful call with 200; anything else is a rejection
        if response.status_code != httpx.codes.OK:
            logger.info("%s %s returned HTTP %d", method, url, response.status_code)
            return HttpResult.failure(ErrorKind.HTTP_STATUS, response.status_code)

        try:
            return HttpResult(data=response.json())
        except ValueError:
            return HttpResult.failure(ErrorKind.PARSE_ERROR, response.status_code)
