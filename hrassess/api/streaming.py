"""
Server-Sent-Events response for the settings channel.
"""
import asyncio
import logging
from typing import AsyncIterator

from fastapi import Request
from fastapi.responses import StreamingResponse

from hrassess.core.config import settings
from hrassess.services.broadcast import QueueStream, SettingsBroadcaster, Subscriber

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"


async def settings_event_stream(
    request: Request,
    broadcaster: SettingsBroadcaster,
    subscriber: Subscriber,
    stream: QueueStream,
    keepalive: float = settings.SSE_KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Drain the subscriber's queue until the client goes away or the hub drops it."""
    try:
        while True:
            if await request.is_disconnected():
                break
            try:
                frame = await stream.read(timeout=keepalive)
            except asyncio.TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            if frame is None:
                break
            yield frame
    finally:
        broadcaster.unsubscribe(subscriber.client_id)


def sse_response(body: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        body,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


async def open_settings_stream(request: Request, broadcaster: SettingsBroadcaster, service, convention) -> StreamingResponse:
    stream = QueueStream(maxsize=settings.SSE_QUEUE_SIZE)
    subscriber = await broadcaster.subscribe(stream, service.store.get_all, convention)
    return sse_response(settings_event_stream(request, broadcaster, subscriber, stream))
