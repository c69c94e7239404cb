"""Records exchanged between the viewer components.

Everything here is immutable: events are produced once by the push channel (or
synthesized by the polling fallback) and then only read.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from dateutil import parser as dateutil_parser

from .errors import PayloadError

_TICKET_PREFIX = re.compile(r"^([A-Za-z]+)")


def now_local() -> datetime:
    """Current time as an aware datetime in the host timezone."""
    return datetime.now().astimezone()


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a server timestamp to an aware datetime.

    Naive values are taken as host-local time. Returns None when the value is
    missing or cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = dateutil_parser.isoparse(value)
        except (ValueError, OverflowError):
            return None
    else:
        return None
    # Go's zero time marks "never".
    if parsed.year <= 1:
        return None
    if parsed.tzinfo is None:
        return parsed.astimezone()
    return parsed


def same_day(when: datetime | None, now: datetime) -> bool:
    """True when `when` falls on the same calendar day as `now` (in now's zone)."""
    if when is None:
        return False
    if now.tzinfo is not None:
        when = when.astimezone(now.tzinfo)
    return when.date() == now.date()


def ticket_prefix(ticket_number: str) -> str:
    m = _TICKET_PREFIX.match(ticket_number)
    return m.group(1).upper() if m else ""


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _counter_label(data: dict[str, Any]) -> str | None:
    name = data.get("counter_name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    number = data.get("counter_number")
    if isinstance(number, (str, int)) and not isinstance(number, bool) and str(number).strip():
        return f"Loket {number}"
    return None


@dataclass(frozen=True)
class CallEvent:
    """A ticket was called to a counter."""

    ticket_number: str
    ticket_type_code: str
    counter_id: int | None
    counter_label: str
    occurred_at: datetime

    @classmethod
    def from_payload(cls, data: Any, *, now: datetime | None = None) -> CallEvent:
        """Build an event from the `data` of a `queue_called` message."""
        if not isinstance(data, dict):
            raise PayloadError("queue_called payload must be an object")

        ticket = data.get("queue_number")
        if not isinstance(ticket, str) or not ticket.strip():
            raise PayloadError("queue_called payload without queue_number")
        ticket = ticket.strip()

        label = _counter_label(data)
        if label is None:
            raise PayloadError(f"queue_called payload for {ticket} without counter label")

        type_code = data.get("queue_type")
        if not isinstance(type_code, str) or not type_code:
            type_code = ticket_prefix(ticket)

        occurred_at = parse_timestamp(data.get("timestamp")) or now or now_local()

        return cls(
            ticket_number=ticket,
            ticket_type_code=type_code,
            counter_id=_optional_int(data.get("counter_id")),
            counter_label=label,
            occurred_at=occurred_at,
        )


@dataclass(frozen=True)
class CounterSnapshot:
    """What one counter is serving right now. A missing ticket means idle."""

    counter_id: int
    ticket_number: str | None = None
    ticket_type_code: str | None = None
    called_at: datetime | None = None

    @property
    def is_idle(self) -> bool:
        return self.ticket_number is None

    @classmethod
    def from_event(cls, event: CallEvent) -> CounterSnapshot:
        if event.counter_id is None:
            raise ValueError("event has no counter id")
        return cls(
            counter_id=event.counter_id,
            ticket_number=event.ticket_number,
            ticket_type_code=event.ticket_type_code,
            called_at=event.occurred_at,
        )

    @classmethod
    def from_queue_record(cls, record: dict[str, Any]) -> CounterSnapshot | None:
        """Snapshot from a server queue record in "called" state.

        Returns None for records that are not attached to a counter.
        """
        counter_id = _optional_int(record.get("counter_id"))
        ticket = record.get("queue_number")
        if counter_id is None or not isinstance(ticket, str) or not ticket:
            return None
        type_code = record.get("queue_type")
        return cls(
            counter_id=counter_id,
            ticket_number=ticket,
            ticket_type_code=type_code if isinstance(type_code, str) else ticket_prefix(ticket),
            called_at=parse_timestamp(record.get("called_at")),
        )


@dataclass(frozen=True)
class AnnouncementJob:
    ticket_number: str
    counter_label: str
    ticket_type_code: str

    @classmethod
    def from_event(cls, event: CallEvent) -> AnnouncementJob:
        return cls(
            ticket_number=event.ticket_number,
            counter_label=event.counter_label,
            ticket_type_code=event.ticket_type_code,
        )


@dataclass(frozen=True)
class StreamMessage:
    """One raw push-channel message before JSON decoding."""

    event: str
    data: str


@dataclass(frozen=True)
class CounterInfo:
    counter_id: int
    counter_number: str
    counter_name: str
    is_active: bool
    current_ticket: str | None = None

    @property
    def label(self) -> str:
        return self.counter_name or f"Loket {self.counter_number}"

    @classmethod
    def from_record(cls, record: Any) -> CounterInfo:
        if not isinstance(record, dict):
            raise PayloadError("counter record must be an object")
        counter_id = _optional_int(record.get("id"))
        if counter_id is None:
            raise PayloadError("counter record without id")
        current = record.get("current_queue")
        ticket = current.get("queue_number") if isinstance(current, dict) else None
        return cls(
            counter_id=counter_id,
            counter_number=str(record.get("counter_number", "")),
            counter_name=str(record.get("counter_name", "") or ""),
            is_active=bool(record.get("is_active", True)),
            current_ticket=ticket if isinstance(ticket, str) and ticket else None,
        )
