"""
Watch Message Router
====================
POST /api/v1/watch/inbound   — a message from the watch (REQUEST_SCORES=1)
GET  /api/v1/watch/messages  — drain queued outbound messages

The outbox only exists when no relay URL is configured; with a relay,
messages are pushed as they are produced and this endpoint returns 404.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, status
from pydantic import BaseModel

from ourabridge.services.bridge import get_bridge_service
from ourabridge.services.watch_channel import (
    REQUEST_SCORES,
    OutboxWatchChannel,
    to_json_message,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/watch", tags=["watch"])


class InboundMessage(BaseModel):
    payload: dict[str, int]


class InboundAck(BaseModel):
    refresh_scheduled: bool


class OutboundMessages(BaseModel):
    messages: list[dict[str, int]]


@router.post(
    "/inbound",
    response_model=InboundAck,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Receive a message from the watch",
)
async def inbound(body: InboundMessage, background_tasks: BackgroundTasks) -> InboundAck:
    if not body.payload.get(REQUEST_SCORES):
        logger.debug("Ignoring watch message with keys %s", sorted(body.payload))
        return InboundAck(refresh_scheduled=False)

    service = get_bridge_service()
    background_tasks.add_task(service.handle_inbound, body.payload)
    return InboundAck(refresh_scheduled=True)


@router.get(
    "/messages",
    response_model=OutboundMessages,
    summary="Drain messages queued for the watch",
    responses={404: {"description": "Messages are pushed to a relay instead"}},
)
async def messages() -> OutboundMessages:
    channel = get_bridge_service().context.channel
    if not isinstance(channel, OutboxWatchChannel):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "Watch messages are pushed to a relay", "code": "no_outbox"},
        )
    return OutboundMessages(messages=[to_json_message(m) for m in channel.drain()])
