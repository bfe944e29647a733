"""
Tests for HttpClient
====================
Covers:
- GET: JSON body returned, bearer header, query params
- Error classification: 401, any non-200 status, unparsable body, transport errors
- POST: form-encoded body

Run: pytest tests/test_http_client.py -v
"""

from __future__ import annotations

import httpx
import pytest
import respx
from httpx import Response

from ourabridge.services.http_client import ErrorKind, HttpClient

_URL = "https://api.ouraring.com/v2/usercollection/daily_sleep"
_TOKEN_URL = "https://api.ouraring.com/oauth/token"


class TestGet:

    @pytest.mark.asyncio
    @respx.mock
    async def test_returns_parsed_json(self):
        respx.get(_URL).mock(return_value=Response(200, json={"data": []}))

        result = await HttpClient().get(_URL, "token")

        assert result.ok
        assert result.data == {"data": []}

    @pytest.mark.asyncio
    @respx.mock
    async def test_bearer_token_and_params_sent(self):
        route = respx.get(_URL).mock(return_value=Response(200, json={"data": []}))

        await HttpClient().get(_URL, "secret-token", params={"start_date": "2026-02-15"})

        request = route.calls[0].request
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.url.params["start_date"] == "2026-02-15"

    @pytest.mark.asyncio
    @respx.mock
    async def test_401_is_unauthorized(self):
        respx.get(_URL).mock(return_value=Response(401, text="Unauthorized"))

        result = await HttpClient().get(_URL, "bad-token")

        assert not result.ok
        assert result.error.kind is ErrorKind.UNAUTHORIZED

    @pytest.mark.asyncio
    @respx.mock
    async def test_other_status_is_http_status(self):
        respx.get(_URL).mock(return_value=Response(429, text="Too Many Requests"))

        result = await HttpClient().get(_URL, "token")

        assert result.error.kind is ErrorKind.HTTP_STATUS
        assert result.error.status_code == 429
        assert str(result.error) == "http_429"
        assert not result.error.kind.is_transient

    @pytest.mark.asyncio
    @respx.mock
    async def test_unparsable_body_is_parse_error(self):
        respx.get(_URL).mock(return_value=Response(200, text="<html>maintenance</html>"))

        result = await HttpClient().get(_URL, "token")

        assert result.error.kind is ErrorKind.PARSE_ERROR
        assert result.error.kind.is_transient

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error_is_network_error(self):
        respx.get(_URL).mock(side_effect=httpx.ConnectError("offline"))

        result = await HttpClient().get(_URL, "token")

        assert result.error.kind is ErrorKind.NETWORK_ERROR
        assert result.error.kind.is_transient

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_network_error(self):
        respx.get(_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        result = await HttpClient(timeout=0.1).get(_URL, "token")

        assert result.error.kind is ErrorKind.NETWORK_ERROR


class TestPost:

    @pytest.mark.asyncio
    @respx.mock
    async def test_form_encoded_body(self):
        route = respx.post(_TOKEN_URL).mock(return_value=Response(200, json={"access_token": "a"}))

        result = await HttpClient().post(_TOKEN_URL, {"grant_type": "refresh_token", "refresh_token": "r t"})

        assert result.data == {"access_token": "a"}
        request = route.calls[0].request
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert request.content == b"grant_type=refresh_token&refresh_token=r+t"

    @pytest.mark.asyncio
    @respx.mock
    async def test_post_rejection_is_http_status(self):
        respx.post(_TOKEN_URL).mock(return_value=Response(400, json={"error": "invalid_grant"}))

        result = await HttpClient().post(_TOKEN_URL, {"grant_type": "refresh_token"})

        assert result.error.kind is ErrorKind.HTTP_STATUS
        assert result.error.status_code == 400

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_content_is_http_status(self):
        respx.post(_TOKEN_URL).mock(return_value=Response(204))

        result = await HttpClient().post(_TOKEN_URL, {"grant_type": "refresh_token"})

        assert result.error.kind is ErrorKind.HTTP_STATUS
        assert str(result.error) == "http_204"
        assert not result.error.kind.is_transient
