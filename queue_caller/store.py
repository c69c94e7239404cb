from __future__ import annotations

# Counter State Store: counter id -> "currently serving" snapshot.
#
# Two writers, never concurrent (both run on the event loop):
# 1) push events (`reconcile_from_event`) for low latency
# 2) periodic authoritative pulls (`reconcile_from_snapshot_pull`) which REPLACE
#    the whole map. A ticket completed or cancelled on the server disappears on
#    the next pull even if we never saw an event for it.
#
# Only snapshots called today count as active; yesterday's calls read as idle.

import enum
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable

from .models import CallEvent, CounterSnapshot, now_local, same_day

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class CounterStatus(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"
    HIGHLIGHTED = "highlighted"


def snapshots_from_called_queues(records: Iterable[Any]) -> list[CounterSnapshot]:
    """Convert server queue records in "called" state into snapshots."""
    snapshots: list[CounterSnapshot] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        snap = CounterSnapshot.from_queue_record(record)
        if snap is not None:
            snapshots.append(snap)
    return snapshots


class CounterStateStore:
    def __init__(self, *, clock: Clock = now_local, highlight_seconds: float = 5.0) -> None:
        self._clock = clock
        self.highlight_seconds = highlight_seconds
        self._snapshots: dict[int, CounterSnapshot] = {}
        # counter id -> end of the "just called" highlight
        self._highlight_until: dict[int, datetime] = {}

    # -------------------- reconciliation --------------------

    def reconcile_from_event(self, event: CallEvent) -> bool:
        """Apply a call event. Returns False when the event cannot be applied."""
        if event.counter_id is None:
            logger.debug("call %s carries no counter id, waiting for next pull", event.ticket_number)
            return False
        now = self._clock()
        if not same_day(event.occurred_at, now):
            logger.info("ignoring call %s from %s (not today)", event.ticket_number, event.occurred_at)
            return False
        self._snapshots[event.counter_id] = CounterSnapshot.from_event(event)
        self._highlight_until[event.counter_id] = now + timedelta(seconds=self.highlight_seconds)
        return True

    def reconcile_from_snapshot_pull(self, snapshots: Iterable[CounterSnapshot]) -> None:
        """Replace the whole map with an authoritative pull."""
        now = self._clock()
        fresh: dict[int, CounterSnapshot] = {}
        for snap in snapshots:
            if snap.is_idle or not same_day(snap.called_at, now):
                continue
            current = fresh.get(snap.counter_id)
            if current is None or _called_before(current, snap):
                fresh[snap.counter_id] = snap

        # A highlight survives only while the counter still serves the same ticket.
        for counter_id in list(self._highlight_until):
            old = self._snapshots.get(counter_id)
            new = fresh.get(counter_id)
            if old is None or new is None or old.ticket_number != new.ticket_number:
                del self._highlight_until[counter_id]

        dropped = set(self._snapshots) - set(fresh)
        if dropped:
            logger.debug("pull cleared counters %s", sorted(dropped))
        self._snapshots = fresh

    # -------------------- queries --------------------

    def get(self, counter_id: int) -> CounterSnapshot | None:
        """The counter's active snapshot, or None when idle."""
        snap = self._snapshots.get(counter_id)
        if snap is None or not same_day(snap.called_at, self._clock()):
            return None
        return snap

    def status(self, counter_id: int) -> CounterStatus:
        if self.get(counter_id) is None:
            return CounterStatus.IDLE
        until = self._highlight_until.get(counter_id)
        if until is not None and self._clock() < until:
            return CounterStatus.HIGHLIGHTED
        return CounterStatus.ACTIVE

    def active(self) -> list[CounterSnapshot]:
        now = self._clock()
        return [
            snap
            for _cid, snap in sorted(self._snapshots.items())
            if same_day(snap.called_at, now)
        ]

    def __len__(self) -> int:
        return len(self.active())


def _called_before(a: CounterSnapshot, b: CounterSnapshot) -> bool:
    if a.called_at is None:
        return True
    if b.called_at is None:
        return False
    return a.called_at < b.called_at
