from datetime import date

import httpx
import pytest

from queue_caller.api import ServerApi
from queue_caller.errors import FetchError


def make_api(handler):
    return ServerApi(httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://server"))


@pytest.mark.asyncio
async def test_latest_called_accepts_paginated_response():
    def handler(request):
        assert request.url.path == "/api/queues"
        assert request.url.params["status"] == "called"
        assert request.url.params["per_page"] == "1"
        return httpx.Response(200, json={"queues": [{"queue_number": "A003", "counter_id": 2}], "total": 9})

    api = make_api(handler)
    assert (await api.latest_called())["queue_number"] == "A003"
    await api.aclose()


@pytest.mark.asyncio
async def test_latest_called_accepts_bare_list_and_empty():
    bodies = [[{"queue_number": "B001"}], {"queues": None, "total": 0}]

    def handler(request):
        return httpx.Response(200, json=bodies.pop(0))

    api = make_api(handler)
    assert (await api.latest_called())["queue_number"] == "B001"
    assert await api.latest_called() is None
    await api.aclose()


@pytest.mark.asyncio
async def test_counter_detail_and_error_body():
    def handler(request):
        if request.url.path == "/api/counter/1":
            return httpx.Response(
                200,
                json={"id": 1, "counter_number": "1", "counter_name": "Loket 1", "is_active": True,
                      "current_queue": {"queue_number": "A001"}},
            )
        return httpx.Response(404, json={"error": "Counter not found"})

    api = make_api(handler)
    counter = await api.counter(1)
    assert counter.label == "Loket 1"
    assert counter.current_ticket == "A001"

    with pytest.raises(FetchError) as exc:
        await api.counter(9)
    assert exc.value.status_code == 404
    assert "Counter not found" in str(exc.value)
    await api.aclose()


@pytest.mark.asyncio
async def test_active_counters_filters_inactive_and_malformed():
    def handler(request):
        return httpx.Response(
            200,
            json=[
                {"id": 1, "counter_number": "1", "counter_name": "Loket 1", "is_active": True},
                {"id": 2, "counter_number": "2", "counter_name": "", "is_active": False},
                {"counter_name": "no id"},
                {"id": 3, "counter_number": "3", "counter_name": "", "is_active": True},
            ],
        )

    api = make_api(handler)
    counters = await api.active_counters()
    assert [(c.counter_id, c.label) for c in counters] == [(1, "Loket 1"), (3, "Loket 3")]
    await api.aclose()


@pytest.mark.asyncio
async def test_called_today_filters_by_date():
    def handler(request):
        assert request.url.params["status"] == "called"
        assert request.url.params["date"] == "2024-05-01"
        return httpx.Response(200, json={"queues": [{"queue_number": "A001", "counter_id": 1}]})

    api = make_api(handler)
    assert len(await api.called_today(date(2024, 5, 1))) == 1
    await api.aclose()


@pytest.mark.asyncio
async def test_failures_become_fetch_errors():
    def handler(request):
        if request.url.path == "/api/stats":
            return httpx.Response(200, text="<html>oops</html>")
        raise httpx.ConnectError("connection refused")

    api = make_api(handler)
    with pytest.raises(FetchError):
        await api.waiting_count()
    with pytest.raises(FetchError):
        await api.latest_called()
    await api.aclose()


@pytest.mark.asyncio
async def test_waiting_count():
    api = make_api(lambda request: httpx.Response(200, json={"waiting_queues": 7, "total_queues": 20}))
    assert await api.waiting_count() == 7
    await api.aclose()
