"""
Oura Authorization Router
=========================
GET  /api/v1/oauth/authorize       — redirect to the Oura consent page
GET  /api/v1/oauth/callback        — Oura redirects back here with ?code=
POST /api/v1/oauth/webview-closed  — raw payload from the redirect page's
                                     close callback (URL-encoded JSON)

A successful exchange immediately runs a refresh cycle so the watch gets
scores without waiting for the next periodic tick.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from ourabridge.services.bridge import get_bridge_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/oauth", tags=["oauth"])


class WebviewClosed(BaseModel):
    response: Optional[str] = None


class AuthorizationResult(BaseModel):
    authorized: bool


def _exchange_failed() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={
            "message": "Oura rejected the authorization code",
            "code": "token_exchange_failed",
        },
    )


@router.get("/authorize", summary="Start the Oura OAuth flow")
async def authorize() -> RedirectResponse:
    service = get_bridge_service()
    logger.info("Opening authorization URL.")
    return RedirectResponse(service.oauth.authorization_url())


@router.get(
    "/callback",
    response_model=AuthorizationResult,
    summary="Complete the Oura OAuth flow",
    responses={
        400: {"description": "No authorization code supplied"},
        502: {"description": "Token exchange failed"},
    },
)
async def callback(
    code: Optional[str] = Query(None, description="Authorization code from Oura"),
) -> AuthorizationResult:
    if not code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Missing authorization code", "code": "code_required"},
        )
    service = get_bridge_service()
    if not await service.handle_authorization_code(code):
        raise _exchange_failed()
    return AuthorizationResult(authorized=True)


@router.post(
    "/webview-closed",
    response_model=AuthorizationResult,
    summary="Handle the redirect page's close payload",
)
async def webview_closed(body: WebviewClosed) -> AuthorizationResult:
    service = get_bridge_service()
    outcome = await service.handle_webview_closed(body.response)
    if outcome is False:
        raise _exchange_failed()
    return AuthorizationResult(authorized=bool(outcome))
