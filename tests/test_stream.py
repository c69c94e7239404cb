import asyncio
import json

import pytest

from queue_caller.errors import TransportError
from queue_caller.models import StreamMessage
from queue_caller.stream import ConnectionState, EventStreamClient, PushEvent, decode_message


def message(mtype, data=None):
    return StreamMessage(event="message", data=json.dumps({"type": mtype, "data": data or {}}))


class ScriptedTransport:
    """Each call to stream() plays the next scripted session.

    A session is a list of StreamMessage / Exception items; after the last item
    the connection stays open. `None` means the connection never opens.
    """

    def __init__(self, *sessions):
        self.sessions = list(sessions)
        self.calls = 0

    async def stream(self, stream_id, on_open):
        self.calls += 1
        session = self.sessions.pop(0) if self.sessions else []
        if session is None:
            await asyncio.Event().wait()
        on_open()
        for item in session:
            if isinstance(item, Exception):
                raise item
            yield item
        await asyncio.Event().wait()


def test_decode_message_known_and_unknown_types():
    assert decode_message(message("queue_called", {"queue_number": "A001"})) == PushEvent(
        "queue_called", {"queue_number": "A001"}
    )
    assert decode_message(message("queue_reset")) is None
    assert decode_message(StreamMessage("connected", '{"client_id":"x"}')) == PushEvent("connected", {"client_id": "x"})


@pytest.mark.asyncio
async def test_delivers_messages_and_drops_malformed(wait_until):
    received = []
    transport = ScriptedTransport(
        [
            StreamMessage("message", "{not json"),
            message("queue_reset"),
            message("queue_called", {"queue_number": "A001"}),
        ]
    )
    client = EventStreamClient(transport, received.append, reconnect_delay=0.01)
    handle = client.connect("display")
    try:
        await wait_until(lambda: received)
        assert [e.type for e in received] == ["queue_called"]
        # malformed payload did not affect the connection
        assert handle.connected
        assert client.state is ConnectionState.OPEN
        assert transport.calls == 1
    finally:
        await handle.close()
    assert client.state is ConnectionState.CLOSED
    assert not client.connected


@pytest.mark.asyncio
async def test_reconnects_after_transport_error(wait_until):
    statuses = []
    transport = ScriptedTransport([TransportError("reset by peer")], [])
    client = EventStreamClient(transport, lambda e: None, reconnect_delay=0.05, on_status=statuses.append)
    client.connect("display")
    try:
        await wait_until(lambda: statuses == [True, False])
        # disconnected immediately, reconnect only after the backoff
        assert not client.connected
        assert transport.calls == 1
        await wait_until(lambda: transport.calls == 2 and client.connected)
        assert statuses == [True, False, True]
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_not_connected_until_open(wait_until):
    transport = ScriptedTransport(None)
    client = EventStreamClient(transport, lambda e: None)
    client.connect(3)
    try:
        await wait_until(lambda: transport.calls == 1)
        assert client.state is ConnectionState.CONNECTING
        assert not client.connected
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_dispatch_errors_keep_connection(wait_until):
    calls = []

    def dispatch(event):
        calls.append(event)
        raise RuntimeError("boom")

    transport = ScriptedTransport([message("queue_added"), message("queue_updated")])
    client = EventStreamClient(transport, dispatch)
    client.connect("display")
    try:
        await wait_until(lambda: len(calls) == 2)
        assert client.connected
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_connect_supersedes_previous_connection(wait_until):
    transport = ScriptedTransport([], [])
    client = EventStreamClient(transport, lambda e: None)
    client.connect("display")
    await wait_until(lambda: client.connected)
    client.connect(2)
    try:
        await wait_until(lambda: transport.calls == 2 and client.connected)
    finally:
        await client.close()
