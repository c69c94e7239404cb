"""MQTT transport for the push channel, built on top of paho-mqtt.

Why this exists:
- Some sites run the ticketing server behind a broker (e.g. Mosquitto) instead
  of exposing its SSE endpoints to the kiosks.
- The server (or a bridge) publishes the same `{"type": ..., "data": ...}`
  envelopes on one topic per viewer role (see `channels.event_topic`).

Design:
- paho-mqtt is callback-based and runs its network loop on its own thread.
- Callbacks never touch viewer state; they hand everything to the asyncio loop
  with `call_soon_threadsafe`, and `stream()` consumes it on the loop thread.
- QoS is kept at 0: a lost event is repaired by the next snapshot pull.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable

import paho.mqtt.client as mqtt

from .channels import DEFAULT_NAMESPACE, event_topic
from .errors import TransportError
from .models import StreamMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Opened:
    pass


@dataclass(frozen=True)
class _Dropped:
    reason: str


def decode_payload(raw: Any) -> str:
    """Normalize an MQTT payload to text.

    Depending on paho-mqtt version / type stubs, msg.payload may be `bytes`
    (typical) or a `str`.
    """
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8")
    return str(raw)


class MqttTransport:
    """Thin wrapper around paho-mqtt exposing the push channel as an async stream."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        namespace: str = DEFAULT_NAMESPACE,
        keepalive: int = 30,
        client_id: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.namespace = namespace
        self.keepalive = keepalive
        self.client_id = client_id or f"queue-caller-{uuid.uuid4().hex[:8]}"

    async def stream(self, stream_id: str | int, on_open: Callable[[], None]) -> AsyncIterator[StreamMessage]:
        loop = asyncio.get_running_loop()
        inbox: asyncio.Queue[StreamMessage | _Opened | _Dropped] = asyncio.Queue()
        topic = event_topic(stream_id, self.namespace)

        def post(item: StreamMessage | _Opened | _Dropped) -> None:
            loop.call_soon_threadsafe(inbox.put_nowait, item)

        # -------------------- paho network thread --------------------

        def on_connect(client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
            if reason_code.is_failure:
                post(_Dropped(f"connect refused: {reason_code}"))
                return
            client.subscribe(topic, qos=0)
            post(_Opened())

        def on_disconnect(client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
            post(_Dropped(f"disconnected: {reason_code}"))

        def on_message(client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                text = decode_payload(msg.payload)
            except UnicodeDecodeError:
                logger.warning("dropping non-UTF-8 payload on %s", msg.topic)
                return
            post(StreamMessage(event="message", data=text))

        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self.client_id, clean_session=True)
        client.on_connect = on_connect
        client.on_disconnect = on_disconnect
        client.on_message = on_message

        def shutdown() -> None:
            client.disconnect()
            client.loop_stop()

        try:
            try:
                await loop.run_in_executor(None, lambda: client.connect(self.host, self.port, keepalive=self.keepalive))
            except OSError as e:
                raise TransportError(f"mqtt {self.host}:{self.port}: {e}") from e

            client.loop_start()
            while True:
                item = await inbox.get()
                if isinstance(item, _Opened):
                    on_open()
                elif isinstance(item, _Dropped):
                    raise TransportError(f"mqtt {self.host}:{self.port}: {item.reason}")
                else:
                    yield item
        finally:
            # loop_stop() joins paho's network thread; keep that off the event loop.
            await loop.run_in_executor(None, shutdown)
