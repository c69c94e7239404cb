import pytest

from queue_caller.errors import FetchError
from queue_caller.fallback import PollingFallback
from queue_caller.models import CallEvent, CounterInfo


class FakeStream:
    def __init__(self, connected=False):
        self.connected = connected


class FakeApi:
    def __init__(self, latest=None):
        self.latest = latest
        self.latest_calls = 0
        self.counter_calls = 0
        self.fail = False

    async def latest_called(self):
        self.latest_calls += 1
        if self.fail:
            raise FetchError("/api/queues: connection refused")
        return self.latest

    async def counter(self, counter_id):
        self.counter_calls += 1
        return CounterInfo(counter_id, str(counter_id), f"Loket {counter_id}", True)


def record(ticket, counter_id=3):
    return {
        "queue_number": ticket,
        "queue_type": "general",
        "counter_id": counter_id,
        "called_at": "2024-05-01T10:00:00+07:00",
    }


@pytest.mark.asyncio
async def test_no_dispatch_while_stream_connected():
    api = FakeApi(record("A007"))
    ingested = []
    fallback = PollingFallback(api, FakeStream(connected=True), ingested.append)

    assert await fallback.tick() is None
    assert ingested == []
    assert api.latest_calls == 0


@pytest.mark.asyncio
async def test_synthesizes_event_when_disconnected():
    api = FakeApi(record("A007"))
    ingested = []
    fallback = PollingFallback(api, FakeStream(), ingested.append)

    event = await fallback.tick()

    assert ingested == [event]
    assert event.ticket_number == "A007"
    assert event.ticket_type_code == "general"
    assert event.counter_id == 3
    assert event.counter_label == "Loket 3"


@pytest.mark.asyncio
async def test_same_ticket_twice_is_surfaced_once():
    api = FakeApi(record("A007"))
    ingested = []
    fallback = PollingFallback(api, FakeStream(), ingested.append)

    await fallback.tick()
    await fallback.tick()
    assert len(ingested) == 1
    assert api.counter_calls == 1

    api.latest = record("A008", counter_id=1)
    await fallback.tick()
    assert [e.ticket_number for e in ingested] == ["A007", "A008"]


@pytest.mark.asyncio
async def test_ticket_seen_on_push_channel_is_not_resurfaced():
    api = FakeApi(record("A007"))
    ingested = []
    fallback = PollingFallback(api, FakeStream(), ingested.append)
    fallback.note_dispatched(CallEvent("A007", "A", 3, "Loket 3", None))

    assert await fallback.tick() is None
    assert ingested == []


@pytest.mark.asyncio
async def test_fetch_failure_is_retried_next_tick():
    api = FakeApi(record("A007"))
    api.fail = True
    ingested = []
    fallback = PollingFallback(api, FakeStream(), ingested.append)

    assert await fallback.tick() is None
    api.fail = False
    assert (await fallback.tick()).ticket_number == "A007"


@pytest.mark.asyncio
async def test_nothing_called_yet():
    ingested = []
    fallback = PollingFallback(FakeApi(None), FakeStream(), ingested.append)
    assert await fallback.tick() is None
    assert ingested == []
