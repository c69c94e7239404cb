"""Server-Sent Events transport for the push channel.

The server keeps one long-lived `text/event-stream` response per viewer:

    event: connected
    data: {"client_id":"..."}

    event: message
    data: {"type":"queue_called","data":{...}}

    : heartbeat

We read it line by line with httpx and yield one `StreamMessage` per event.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Callable, Iterable

import httpx

from .channels import sse_stream_path
from .errors import TransportError
from .models import StreamMessage

logger = logging.getLogger(__name__)

# The server sends a heartbeat comment every 30 s; silence well past that means
# the connection is dead even if TCP has not noticed yet.
READ_TIMEOUT = 45.0


def parse_event(lines: Iterable[str]) -> StreamMessage | None:
    """Assemble one SSE event from its field lines. None if it carries no data."""
    event_name = "message"
    data_lines: list[str] = []
    for line in lines:
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event_name = value or "message"
        elif field == "data":
            data_lines.append(value)
    if not data_lines:
        return None
    return StreamMessage(event=event_name, data="\n".join(data_lines))


async def iter_events(lines: AsyncIterator[str]) -> AsyncIterator[StreamMessage]:
    buffer: list[str] = []
    async for line in lines:
        if not line:
            if buffer:
                msg = parse_event(buffer)
                buffer.clear()
                if msg is not None:
                    yield msg
            continue
        if line.startswith(":"):
            # comment / heartbeat
            continue
        buffer.append(line)
    if buffer:
        msg = parse_event(buffer)
        if msg is not None:
            yield msg


class SseTransport:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def connect(cls, base_url: str, *, read_timeout: float = READ_TIMEOUT) -> SseTransport:
        timeout = httpx.Timeout(10.0, read=read_timeout)
        return cls(httpx.AsyncClient(base_url=base_url, timeout=timeout))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def stream(self, stream_id: str | int, on_open: Callable[[], None]) -> AsyncIterator[StreamMessage]:
        path = sse_stream_path(stream_id)
        try:
            async with self._client.stream(
                "GET", path, headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"}
            ) as response:
                if response.status_code >= 400:
                    raise TransportError(f"{path}: HTTP {response.status_code}")
                on_open()
                async for msg in iter_events(response.aiter_lines()):
                    yield msg
        except httpx.HTTPError as e:
            raise TransportError(f"{path}: {e}") from e
        # The server never ends the stream on its own; treat EOF as a drop.
        raise TransportError(f"{path}: stream closed by server")
