"""Polling fallback for when the push channel is down."""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from .errors import FetchError
from .models import CallEvent, CounterInfo, now_local, parse_timestamp, ticket_prefix

logger = logging.getLogger(__name__)


class ConnectionStatus(Protocol):
    @property
    def connected(self) -> bool: ...


class LatestCallSource(Protocol):
    async def latest_called(self) -> dict[str, Any] | None: ...

    async def counter(self, counter_id: int) -> CounterInfo: ...


class PollingFallback:
    """Surfaces the latest called ticket via REST while the stream is disconnected.

    Dedup is by ticket number only: a ticket is surfaced once, until some other
    number has been observed.
    """

    def __init__(
        self,
        api: LatestCallSource,
        stream: ConnectionStatus,
        ingest: Callable[[CallEvent], Any],
    ) -> None:
        self.api = api
        self.stream = stream
        self.ingest = ingest
        self.last_ticket: str | None = None

    def note_dispatched(self, event: CallEvent) -> None:
        """Record a ticket surfaced by the push channel."""
        self.last_ticket = event.ticket_number

    async def tick(self) -> CallEvent | None:
        if self.stream.connected:
            return None
        try:
            return await self._poll()
        except FetchError as e:
            logger.warning("poll failed: %s", e)
            return None

    async def _poll(self) -> CallEvent | None:
        record = await self.api.latest_called()
        if record is None:
            return None
        ticket = record.get("queue_number")
        if not isinstance(ticket, str) or not ticket or ticket == self.last_ticket:
            return None

        counter_id = record.get("counter_id")
        if not isinstance(counter_id, int) or isinstance(counter_id, bool):
            logger.debug("latest called ticket %s has no counter", ticket)
            return None
        counter = await self.api.counter(counter_id)

        # Only remember the ticket once it has actually been surfaced.
        self.last_ticket = ticket
        type_code = record.get("queue_type")
        event = CallEvent(
            ticket_number=ticket,
            ticket_type_code=type_code if isinstance(type_code, str) and type_code else ticket_prefix(ticket),
            counter_id=counter_id,
            counter_label=counter.label,
            occurred_at=parse_timestamp(record.get("called_at")) or now_local(),
        )
        logger.info("poll surfaced %s at %s", ticket, counter.label)
        self.ingest(event)
        return event
