"""
live/routes.py -- GET /sse/updates, the live change feed.

Each connection registers one Subscriber with the hub and streams:
  event: connected   -- once, immediately
  event: accounts    -- public account views, after every accounts write
  event: media       -- media records, after every media write
  event: followers   -- follower records, after every followers write

A ": ping" comment goes out after sse_ping_seconds of silence; it also gives
the stream a chance to notice a client that left without closing cleanly.
The subscriber is unregistered however the stream ends (client disconnect,
write failure, hub shutdown).
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from core.config import get_settings
from live.hub import CONNECTED, NotificationHub

router = APIRouter()


async def event_stream(
    hub: NotificationHub,
    is_disconnected: Callable[[], Awaitable[bool]],
    ping_seconds: float,
) -> AsyncIterator[str]:
    """Yield encoded event-stream frames for one subscriber until it goes away."""
    subscriber = hub.register()
    try:
        yield CONNECTED.encode()
        while True:
            try:
                event = await asyncio.wait_for(subscriber.queue.get(), timeout=ping_seconds)
            except asyncio.TimeoutError:
                if await is_disconnected():
                    break
                yield ": ping\n\n"
                continue
            if event is None:
                break
            yield event.encode()
    finally:
        hub.unregister(subscriber)


@router.get("/sse/updates")
async def updates(request: Request) -> StreamingResponse:
    """Open a text/event-stream of collection changes."""
    hub: NotificationHub = request.app.state.hub
    stream = event_stream(hub, request.is_disconnected, get_settings().sse_ping_seconds)
    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
