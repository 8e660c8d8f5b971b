import asyncio
import json

import pytest

from hrassess.api.streaming import KEEPALIVE_FRAME, settings_event_stream
from hrassess.core.errors import PartialDeliveryFailure
from hrassess.services.broadcast import QueueStream, SettingsBroadcaster, sse_frame
from hrassess.services.naming import NamingConvention


class RecordingStream:
    def __init__(self, fail: bool = False):
        self.frames = []
        self.fail = fail
        self.closed = False

    async def write(self, frame: str) -> None:
        if self.fail:
            raise ConnectionResetError("peer gone")
        self.frames.append(frame)

    def close(self) -> None:
        self.closed = True

    def payloads(self):
        return [json.loads(frame[len("data: "):]) for frame in self.frames]


class FakeRequest:
    def __init__(self):
        self.disconnected = False

    async def is_disconnected(self) -> bool:
        return self.disconnected


async def load_snapshot():
    return {"minimum_passing_score": 70, "mg1_enabled": True}


def test_sse_frame_format():
    assert sse_frame({"type": "connected"}) == 'data: {"type": "connected"}\n\n'


async def test_subscribe_sends_connected_then_snapshot():
    hub = SettingsBroadcaster()
    stream = RecordingStream()

    subscriber = await hub.subscribe(stream, load_snapshot)

    assert subscriber.client_id in hub
    connected, update = stream.payloads()
    assert connected == {"type": "connected", "message": "SSE connection established"}
    assert update == {"type": "settings_update", "data": {"minimum_passing_score": 70, "mg1_enabled": True}}


async def test_external_subscriber_gets_android_names():
    hub = SettingsBroadcaster()
    stream = RecordingStream()
    await hub.subscribe(stream, load_snapshot, NamingConvention.EXTERNAL)

    data = stream.payloads()[1]["data"]
    assert data["minigame1_enabled"] is True
    assert data["mg1_enabled"] is True


async def test_publish_isolates_failing_subscriber():
    hub = SettingsBroadcaster()
    first, second, third = RecordingStream(), RecordingStream(), RecordingStream()
    subscribers = [await hub.subscribe(s, load_snapshot) for s in (first, second, third)]
    second.fail = True

    delivered = await hub.publish({"minimum_passing_score": 85})

    assert delivered == 2
    assert len(hub) == 2
    assert subscribers[1].client_id not in hub
    assert second.closed
    for stream in (first, third):
        assert stream.payloads()[-1] == {"type": "settings_update", "data": {"minimum_passing_score": 85}}
        assert len(stream.frames) == 3


async def test_publish_translates_per_subscriber():
    hub = SettingsBroadcaster()
    internal, external = RecordingStream(), RecordingStream()
    await hub.subscribe(internal, load_snapshot, NamingConvention.INTERNAL)
    await hub.subscribe(external, load_snapshot, NamingConvention.EXTERNAL)

    await hub.publish({"mg3_rounds": 9})

    assert internal.payloads()[-1]["data"] == {"mg3_rounds": 9}
    assert external.payloads()[-1]["data"] == {"mg3_rounds": 9, "minigame3_rounds": 9}


async def test_failed_handshake_does_not_register():
    hub = SettingsBroadcaster()
    with pytest.raises(PartialDeliveryFailure):
        await hub.subscribe(RecordingStream(fail=True), load_snapshot)
    assert len(hub) == 0


async def test_unsubscribe_is_idempotent():
    hub = SettingsBroadcaster()
    stream = RecordingStream()
    subscriber = await hub.subscribe(stream, load_snapshot)

    assert hub.unsubscribe(subscriber.client_id) is True
    assert hub.unsubscribe(subscriber.client_id) is False
    assert hub.unsubscribe("never-registered") is False
    assert stream.closed
    assert await hub.publish({"minimum_passing_score": 1}) == 0


async def test_client_ids_are_unique():
    hub = SettingsBroadcaster()
    for _ in range(20):
        await hub.subscribe(RecordingStream(), load_snapshot)
    assert len(set(hub.client_ids())) == 20


async def test_slow_reader_is_dropped_when_its_queue_is_full():
    hub = SettingsBroadcaster()
    stream = QueueStream(maxsize=2)
    await hub.subscribe(stream, load_snapshot)

    assert await hub.publish({"minimum_passing_score": 85}) == 0
    assert len(hub) == 0
    assert stream.closed


async def test_dropped_slow_reader_stream_ends_instead_of_idling():
    hub = SettingsBroadcaster()
    stream = QueueStream(maxsize=2)
    subscriber = await hub.subscribe(stream, load_snapshot)
    await hub.publish({"minimum_passing_score": 85})

    body = settings_event_stream(FakeRequest(), hub, subscriber, stream, keepalive=0.01)
    frames = []
    with pytest.raises(StopAsyncIteration):
        for _ in range(5):
            frames.append(await body.__anext__())

    assert KEEPALIVE_FRAME not in frames
    assert frames == []


async def test_broadcast_current_publishes_loaded_snapshot():
    hub = SettingsBroadcaster()
    stream = RecordingStream()
    await hub.subscribe(stream, load_snapshot)

    async def fresh():
        return {"minimum_passing_score": 85}

    assert await hub.broadcast_current(fresh) == {"minimum_passing_score": 85}
    assert stream.payloads()[-1]["data"] == {"minimum_passing_score": 85}


async def test_event_stream_drains_queue_and_unsubscribes_on_disconnect():
    hub = SettingsBroadcaster()
    stream = QueueStream()
    subscriber = await hub.subscribe(stream, load_snapshot)
    request = FakeRequest()
    body = settings_event_stream(request, hub, subscriber, stream, keepalive=0.01)

    assert json.loads((await body.__anext__())[len("data: "):])["type"] == "connected"
    assert json.loads((await body.__anext__())[len("data: "):])["type"] == "settings_update"
    assert await body.__anext__() == KEEPALIVE_FRAME

    await hub.publish({"minimum_passing_score": 85})
    assert '"minimum_passing_score": 85' in await body.__anext__()

    request.disconnected = True
    with pytest.raises(StopAsyncIteration):
        await body.__anext__()
    assert subscriber.client_id not in hub


async def test_event_stream_ends_when_hub_drops_subscriber():
    hub = SettingsBroadcaster()
    stream = QueueStream()
    subscriber = await hub.subscribe(stream, load_snapshot)
    body = settings_event_stream(FakeRequest(), hub, subscriber, stream, keepalive=1.0)

    await body.__anext__()
    await body.__anext__()
    hub.unsubscribe(subscriber.client_id)

    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(body.__anext__(), timeout=1.0)
