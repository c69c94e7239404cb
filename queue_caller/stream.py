"""Event Stream Client: the push connection and its reconnection policy.

States:

    CONNECTING -> OPEN -> (ERROR -> CONNECTING after a fixed delay)

and CLOSED once `close()` is called. The boolean `connected` is what the polling
fallback consults: it flips to True on OPEN and back to False the moment the
transport fails.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Protocol

from .errors import PayloadError, TransportError
from .models import StreamMessage

logger = logging.getLogger(__name__)

# Message types delivered to the dispatch callback; anything else is ignored.
KNOWN_TYPES = frozenset({"queue_called", "queue_updated", "queue_added", "settings_updated", "connected"})


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(frozen=True)
class PushEvent:
    type: str
    data: Any


class Transport(Protocol):
    def stream(self, stream_id: str | int, on_open: Callable[[], None]) -> AsyncIterator[StreamMessage]: ...


def decode_message(msg: StreamMessage) -> PushEvent | None:
    """Decode one raw message. Returns None for message types we don't handle.

    Raises PayloadError when the payload is not a `{"type": ..., "data": ...}` record.
    """
    if msg.event == "connected":
        # Named SSE event sent once on subscribe; its data is informational.
        try:
            data = json.loads(msg.data)
        except ValueError:
            data = msg.data
        return PushEvent(type="connected", data=data)

    try:
        envelope = json.loads(msg.data)
    except ValueError as e:
        raise PayloadError(f"invalid JSON: {e}") from e
    if not isinstance(envelope, dict) or not isinstance(envelope.get("type"), str):
        raise PayloadError("message without a type")

    mtype = envelope["type"]
    if mtype not in KNOWN_TYPES:
        return None
    return PushEvent(type=mtype, data=envelope.get("data"))


class StreamHandle:
    """Returned by `EventStreamClient.connect`; closes that connection."""

    def __init__(self, client: EventStreamClient, stream_id: str | int) -> None:
        self._client = client
        self.stream_id = stream_id

    @property
    def connected(self) -> bool:
        return self._client.connected

    async def close(self) -> None:
        await self._client.close()


class EventStreamClient:
    def __init__(
        self,
        transport: Transport,
        dispatch: Callable[[PushEvent], Any],
        *,
        reconnect_delay: float = 5.0,
        on_status: Callable[[bool], Any] | None = None,
    ) -> None:
        self.transport = transport
        self.dispatch = dispatch
        self.reconnect_delay = reconnect_delay
        self.on_status = on_status

        self._state = ConnectionState.CLOSED
        self._connected = False
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self, stream_id: str | int) -> StreamHandle:
        """Open the push channel for a viewer, superseding any previous connection."""
        if self._task is not None:
            self._task.cancel()
        self._set_connected(False)
        self._state = ConnectionState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(self._run(stream_id), name=f"event-stream-{stream_id}")
        return StreamHandle(self, stream_id)

    async def close(self) -> None:
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._set_connected(False)
        self._state = ConnectionState.CLOSED

    # -------------------- connection loop --------------------

    async def _run(self, stream_id: str | int) -> None:
        while True:
            self._state = ConnectionState.CONNECTING
            logger.debug("connecting push channel %s", stream_id)
            try:
                async with aclosing(self.transport.stream(stream_id, self._on_open)) as messages:
                    async for msg in messages:
                        self._deliver(msg)
            except TransportError as e:
                logger.warning("push channel error: %s", e)
            except Exception:
                logger.exception("push channel failed")

            self._state = ConnectionState.ERROR
            self._set_connected(False)
            logger.info("reconnecting push channel in %.1fs", self.reconnect_delay)
            await asyncio.sleep(self.reconnect_delay)

    def _on_open(self) -> None:
        self._state = ConnectionState.OPEN
        self._set_connected(True)
        logger.info("push channel open")

    def _set_connected(self, value: bool) -> None:
        if value == self._connected:
            return
        self._connected = value
        if self.on_status is not None:
            try:
                self.on_status(value)
            except Exception:
                logger.exception("status callback failed")

    def _deliver(self, msg: StreamMessage) -> None:
        try:
            event = decode_message(msg)
        except PayloadError as e:
            logger.warning("dropping malformed push message: %s", e)
            return
        if event is None:
            return
        try:
            self.dispatch(event)
        except Exception:
            # Keep the connection alive whatever the consumer does.
            logger.exception("dispatch failed for %s", event.type)
