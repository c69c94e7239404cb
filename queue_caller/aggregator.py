from __future__ import annotations

# Display Aggregator: what the public board shows.
#
# - now calling: the ticket whose announcement is playing (or played last)
# - recent calls: the last few tickets, newest first (default 5)
# - history: a longer newest-first log (default 20)
#
# Both lists are bounded deques. A call whose ticket number equals the current
# head is dropped: the same call can reach us twice (push + polling fallback).

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .models import CallEvent, now_local


def time_ago(when: datetime, now: datetime) -> str:
    """Relative Indonesian label, e.g. "3 menit lalu"."""
    seconds = int((now - when).total_seconds())
    if seconds < 10:
        return "baru saja"
    if seconds < 60:
        return f"{seconds} detik lalu"
    if seconds < 3600:
        return f"{seconds // 60} menit lalu"
    if seconds < 86400:
        return f"{seconds // 3600} jam lalu"
    return f"{seconds // 86400} hari lalu"


@dataclass(frozen=True)
class ViewEntry:
    ticket_number: str
    counter_label: str
    ago: str


@dataclass(frozen=True)
class DisplayView:
    """Immutable render of the board, safe to hand to another thread."""

    rendered_at: datetime
    now_calling: ViewEntry | None
    recent: tuple[ViewEntry, ...]
    history: tuple[ViewEntry, ...]
    waiting_count: int | None
    connected: bool

    def as_text(self) -> str:
        lines = [f"=== {self.rendered_at:%H:%M:%S} | {'Terhubung' if self.connected else 'Polling Mode'} ==="]
        if self.now_calling is not None:
            lines.append(f"Memanggil: {self.now_calling.ticket_number} -> {self.now_calling.counter_label}")
        else:
            lines.append("Memanggil: ---")
        if self.waiting_count is not None:
            lines.append(f"Menunggu: {self.waiting_count}")
        if self.recent:
            lines.append("Terakhir dipanggil:")
            lines.extend(f"  {e.ticket_number:<8} {e.counter_label:<16} {e.ago}" for e in self.recent)
        return "\n".join(lines)


class DisplayAggregator:
    def __init__(
        self,
        *,
        recent_capacity: int = 5,
        history_capacity: int = 20,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        if recent_capacity < 1 or history_capacity < 1:
            raise ValueError("capacities must be positive")
        self._clock = clock
        self._recent: deque[CallEvent] = deque(maxlen=recent_capacity)
        self._history: deque[CallEvent] = deque(maxlen=history_capacity)
        self.now_calling: CallEvent | None = None
        self.waiting_count: int | None = None
        self.connected = False

    @property
    def recent(self) -> list[CallEvent]:
        return list(self._recent)

    @property
    def history(self) -> list[CallEvent]:
        return list(self._history)

    def add_recent_call(self, event: CallEvent) -> bool:
        return _push_front(self._recent, event)

    def add_history(self, event: CallEvent) -> bool:
        return _push_front(self._history, event)

    def set_now_calling(self, event: CallEvent) -> None:
        self.now_calling = event

    def render(self) -> DisplayView:
        now = self._clock()

        def entry(e: CallEvent) -> ViewEntry:
            return ViewEntry(e.ticket_number, e.counter_label, time_ago(e.occurred_at, now))

        return DisplayView(
            rendered_at=now,
            now_calling=entry(self.now_calling) if self.now_calling is not None else None,
            recent=tuple(entry(e) for e in self._recent),
            history=tuple(entry(e) for e in self._history),
            waiting_count=self.waiting_count,
            connected=self.connected,
        )


def _push_front(entries: deque[CallEvent], event: CallEvent) -> bool:
    if entries and entries[0].ticket_number == event.ticket_number:
        return False
    # maxlen evicts from the right (oldest) end.
    entries.appendleft(event)
    return True
