"""
Ourabridge API
==============
FastAPI application entry point. Mount routers here.

On startup a background task replays cached scores, runs one refresh
cycle and then refreshes every `refresh_interval_minutes` until shutdown.
Requests are served while that first cycle is still in flight.
"""

import asyncio
import contextlib
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ourabridge.config import get_settings
from ourabridge.routers import oauth, watch
from ourabridge.services.bridge import get_bridge_service, start_periodic

settings = get_settings()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    task = start_periodic(get_bridge_service())
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


app = FastAPI(
    title="Ourabridge API",
    description="Oura scores relay for a companion watch",
    version="0.1.0",
    docs_url="/api/docs" if settings.environment != "production" else None,
    redoc_url="/api/redoc" if settings.environment != "production" else None,
    lifespan=lifespan,
)

app.include_router(oauth.router)
app.include_router(watch.router)


@app.get("/api/v1/health")
async def health_check() -> dict:
    return {"status": "ok", "service": "ourabridge"}
