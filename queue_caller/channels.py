"""Endpoint and topic helpers.

We keep path/topic construction in one place so the REST client, the SSE
transport and the MQTT transport agree on naming.

Push channel, one per viewer role:
- SSE: `/api/sse/display` or `/api/sse/counter/<counter_id>`
- MQTT (under a configurable namespace, default `queue/v1`):
    `<ns>/events/display` or `<ns>/events/counter/<counter_id>`

REST (request/response):
- `/api/queues`            called tickets, newest first when status=called
- `/api/counter/<id>`      one counter with its current ticket
- `/api/counters`          all counters
- `/api/stats`             aggregated counts (waiting tickets, ...)
"""

from __future__ import annotations

DISPLAY_STREAM = "display"
DEFAULT_NAMESPACE = "queue/v1"


def is_display_stream(stream_id: str | int) -> bool:
    return str(stream_id) == DISPLAY_STREAM


def sse_stream_path(stream_id: str | int) -> str:
    """Path of the SSE endpoint for a viewer.

    `stream_id` is either "display" or a counter id.
    """
    if is_display_stream(stream_id):
        return "/api/sse/display"
    return f"/api/sse/counter/{stream_id}"


def event_topic(stream_id: str | int, namespace: str = DEFAULT_NAMESPACE) -> str:
    if is_display_stream(stream_id):
        return f"{namespace}/events/display"
    return f"{namespace}/events/counter/{stream_id}"


def queues_path() -> str:
    return "/api/queues"


def counter_path(counter_id: int) -> str:
    return f"/api/counter/{counter_id}"


def counters_path() -> str:
    return "/api/counters"


def stats_path() -> str:
    return "/api/stats"
