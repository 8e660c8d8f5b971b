"""
Settings broadcast hub.

One channel ("settings updates"), many long-lived subscribers. The hub is a
plain object owned by the application (``app.state.broadcaster``); nothing
here is global. Delivery is best effort: each subscriber is written to
independently, a failed write removes that subscriber, and nothing is kept
for subscribers that are not connected.
"""
import asyncio
import json
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol

from hrassess.core.errors import PartialDeliveryFailure
from hrassess.services.naming import NamingConvention, translate

logger = logging.getLogger(__name__)

CONNECTED = "connected"
SETTINGS_UPDATE = "settings_update"

SnapshotLoader = Callable[[], Awaitable[Dict[str, Any]]]


def envelope(kind: str, data: Optional[Mapping[str, Any]] = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"type": kind}
    if data is not None:
        body["data"] = dict(data)
    if message is not None:
        body["message"] = message
    return body


def sse_frame(body: Mapping[str, Any]) -> str:
    return f"data: {json.dumps(body)}\n\n"


def new_client_id() -> str:
    return f"{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class SubscriberStream(Protocol):
    async def write(self, frame: str) -> None: ...

    def close(self) -> None: ...


class QueueStream:
    """Bounded buffer between the hub and one SSE response.

    A subscriber that stops reading fills its queue; the next write then
    fails and the hub drops it. Closing leaves only the end marker, so the
    reader stops on its next read.
    """

    def __init__(self, maxsize: int = 100):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    async def write(self, frame: str) -> None:
        if self.closed:
            raise ConnectionError("stream closed")
        self.queue.put_nowait(frame)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # pending frames are discarded so the end marker always fits
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(None)

    async def read(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next frame, ``None`` once closed. Raises ``asyncio.TimeoutError`` on timeout."""
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)


class Subscriber:
    def __init__(self, client_id: str, stream: SubscriberStream, convention: NamingConvention):
        self.client_id = client_id
        self.stream = stream
        self.convention = convention
        self.connected_at = datetime.now(timezone.utc)

    async def send(self, frame: str) -> None:
        try:
            await self.stream.write(frame)
        except Exception as exc:
            raise PartialDeliveryFailure(self.client_id, str(exc) or exc.__class__.__name__) from exc


class SettingsBroadcaster:
    """Registry of open settings streams keyed by client id."""

    def __init__(self):
        self._subscribers: Dict[str, Subscriber] = {}
        # serialises snapshot-on-subscribe with publishes
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._subscribers

    def client_ids(self) -> List[str]:
        return list(self._subscribers)

    async def subscribe(
        self,
        stream: SubscriberStream,
        snapshot_loader: SnapshotLoader,
        convention: NamingConvention = NamingConvention.INTERNAL,
    ) -> Subscriber:
        """Register ``stream`` and write the ``connected`` envelope plus the current snapshot."""
        subscriber = Subscriber(new_client_id(), stream, convention)
        async with self._lock:
            self._subscribers[subscriber.client_id] = subscriber
            logger.info("Settings subscriber %s connected (%s). Total: %d",
                        subscriber.client_id, convention.value, len(self._subscribers))
            try:
                await subscriber.send(sse_frame(envelope(CONNECTED, message="SSE connection established")))
                snapshot = await snapshot_loader()
                await subscriber.send(sse_frame(envelope(SETTINGS_UPDATE, translate(snapshot, convention))))
            except BaseException:
                self._drop(subscriber.client_id)
                raise
        return subscriber

    def unsubscribe(self, client_id: str) -> bool:
        """Remove a subscriber; removing an unknown id is a no-op."""
        subscriber = self._drop(client_id)
        if subscriber is None:
            return False
        connected_for = (datetime.now(timezone.utc) - subscriber.connected_at).total_seconds()
        logger.info("Settings subscriber %s disconnected after %.1fs. Remaining: %d",
                    client_id, connected_for, len(self._subscribers))
        return True

    def _drop(self, client_id: str) -> Optional[Subscriber]:
        subscriber = self._subscribers.pop(client_id, None)
        if subscriber is not None:
            subscriber.stream.close()
        return subscriber

    async def publish(self, settings: Mapping[str, Any]) -> int:
        """Write one ``settings_update`` to every subscriber; returns successful deliveries."""
        async with self._lock:
            return await self._fan_out(settings)

    async def broadcast_current(self, snapshot_loader: SnapshotLoader) -> Dict[str, Any]:
        """Load the current snapshot and publish it; returns the snapshot."""
        async with self._lock:
            snapshot = await snapshot_loader()
            await self._fan_out(snapshot)
        return snapshot

    async def _fan_out(self, settings: Mapping[str, Any]) -> int:
        frames: Dict[NamingConvention, str] = {}
        delivered = 0
        failed: List[str] = []
        for client_id, subscriber in list(self._subscribers.items()):
            frame = frames.get(subscriber.convention)
            if frame is None:
                frame = sse_frame(envelope(SETTINGS_UPDATE, translate(settings, subscriber.convention)))
                frames[subscriber.convention] = frame
            try:
                await subscriber.send(frame)
                delivered += 1
            except PartialDeliveryFailure as exc:
                logger.warning("%s; removing subscriber", exc.message)
                failed.append(client_id)

        for client_id in failed:
            self._drop(client_id)

        logger.info("Broadcasted settings update to %d clients (%d dropped)", delivered, len(failed))
        return delivered
