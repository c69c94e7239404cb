from __future__ import annotations

# The viewer runtime.
#
# IMPORTANT: everything here runs on ONE asyncio event loop. There are no locks;
# correctness comes from who is allowed to write what:
# - producers (push stream, polling fallback) only call `ingest()`
# - one consumer task calls `dispatch()`, the only writer of call events into
#   the Store, the Aggregator and the Sequencer queue
# - the snapshot-pull loop is the only other Store writer (full replace)
# - the Sequencer worker pops its own queue and drives the display update
#
# Lifecycle: `CallerContext.create(config)` -> `await start()` -> `await dispose()`.

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from .aggregator import DisplayAggregator, DisplayView
from .announcer import AudioAnnouncer, BellTone, Pyttsx3Speech
from .api import ServerApi
from .config import CallerConfig
from .errors import FetchError, PayloadError
from .fallback import PollingFallback
from .models import AnnouncementJob, CallEvent, CounterInfo, now_local
from .preferences import DEFAULT_PATH, load_audio_enabled, save_audio_enabled
from .sequencer import AnnouncementSequencer
from .store import CounterStateStore, CounterStatus, snapshots_from_called_queues
from .stream import EventStreamClient, PushEvent, Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterLine:
    counter_id: int
    label: str
    ticket_number: str | None
    status: CounterStatus


@dataclass(frozen=True)
class Screen:
    """Everything a renderer needs, detached from the live objects."""

    role: str
    view: DisplayView
    counters: tuple[CounterLine, ...]
    audio_enabled: bool

    def as_text(self) -> str:
        lines = [self.view.as_text()]
        if self.counters:
            lines.append("Loket:")
            for c in self.counters:
                mark = "*" if c.status is CounterStatus.HIGHLIGHTED else " "
                lines.append(f" {mark}{c.label:<16} {c.ticket_number or '---'}")
        return "\n".join(lines)


Renderer = Callable[[Screen], Any]


class CallerContext:
    def __init__(
        self,
        config: CallerConfig,
        *,
        api: ServerApi,
        transport: Transport,
        announcer: AudioAnnouncer,
        renderer: Renderer | None = None,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self.config = config
        self.api = api
        self.transport = transport
        self.announcer = announcer
        self.renderer = renderer
        self._clock = clock

        self.store = CounterStateStore(clock=clock, highlight_seconds=config.highlight_seconds)
        self.aggregator = DisplayAggregator(
            recent_capacity=config.recent_capacity,
            history_capacity=config.history_capacity,
            clock=clock,
        )
        self.sequencer = AnnouncementSequencer(announcer, on_start=self._on_job_start, pause=config.inter_job_pause)
        self.stream = EventStreamClient(
            transport,
            self._on_push,
            reconnect_delay=config.reconnect_delay,
            on_status=self._on_status,
        )
        self.fallback = PollingFallback(api, self.stream, self.ingest)

        self.settings: dict[str, Any] = {}
        self.labels: dict[int, str] = {}

        self._inbox: asyncio.Queue[CallEvent] = asyncio.Queue()
        # Events whose announcements are queued, in sequencer order.
        self._announcing: deque[CallEvent] = deque()
        self._resync = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []
        # Pending "highlight expired" re-renders.
        self._highlight_timers: list[asyncio.TimerHandle] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._started = False

    @classmethod
    def create(cls, config: CallerConfig, *, renderer: Renderer | None = None) -> CallerContext:
        """Build a context with the real network and audio backends."""
        transport: Any
        if config.transport == "mqtt":
            from .mqtt_client import MqttTransport

            transport = MqttTransport(host=config.mqtt_host, port=config.mqtt_port, namespace=config.namespace)
        else:
            from .sse import SseTransport

            transport = SseTransport.connect(config.server_url)

        enabled = config.audio_enabled
        if enabled is None:
            enabled = load_audio_enabled(config.preferences_path or DEFAULT_PATH)

        announcer = AudioAnnouncer(
            tone=BellTone(),
            speech=Pyttsx3Speech(),
            enabled=enabled,
            bell_delay=config.bell_delay,
            disabled_delay=config.disabled_delay,
        )
        return cls(
            config,
            api=ServerApi.connect(config.server_url),
            transport=transport,
            announcer=announcer,
            renderer=renderer,
        )

    # -------------------- lifecycle --------------------

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        loop = self._loop = asyncio.get_running_loop()

        self.sequencer.start()
        self._tasks = [
            loop.create_task(self._consume(), name="ingest"),
            loop.create_task(self._every(self.config.poll_interval, self.fallback.tick), name="poll"),
            loop.create_task(self._pull_loop(), name="snapshot-pull"),
            loop.create_task(self._every(self.config.render_interval, self._render_async), name="render"),
        ]
        self.stream.connect(self.config.stream_id)
        logger.info("%s viewer started (server=%s, transport=%s)", self.config.role, self.config.server_url, self.config.transport)

    async def dispose(self) -> None:
        if not self._started:
            return
        self._started = False
        self._loop = None
        for timer in self._highlight_timers:
            timer.cancel()
        self._highlight_timers = []
        await self.stream.close()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self.sequencer.stop()

        for resource in (self.api, self.transport):
            aclose = getattr(resource, "aclose", None)
            if aclose is not None:
                await aclose()
        logger.info("%s viewer stopped", self.config.role)

    # -------------------- ingestion + dispatch --------------------

    def ingest(self, event: CallEvent) -> None:
        """Entry point for both producers (push stream and polling fallback)."""
        self._inbox.put_nowait(event)

    async def drain(self) -> None:
        """Wait until every ingested event has been dispatched."""
        await self._inbox.join()

    async def _consume(self) -> None:
        while True:
            event = await self._inbox.get()
            try:
                self.dispatch(event)
            except Exception:
                logger.exception("dispatch failed for %s", event.ticket_number)
            finally:
                self._inbox.task_done()

    def dispatch(self, event: CallEvent) -> None:
        logger.info("call %s -> %s", event.ticket_number, event.counter_label)
        self.fallback.note_dispatched(event)
        if self.store.reconcile_from_event(event) and self._loop is not None:
            self._schedule_highlight_expiry(self._loop)

        if self.config.is_display:
            self.aggregator.add_history(event)
            self._announcing.append(event)
            self.sequencer.enqueue(AnnouncementJob.from_event(event))
            # The display gets no queue_updated pushes; refresh counts after every call.
            self._resync.set()
        elif event.counter_id is not None and event.counter_id != self.config.counter_id:
            # Polling sees the latest call of any counter; this screen shows only its own.
            logger.debug("call %s belongs to counter %s, not shown", event.ticket_number, event.counter_id)
        else:
            self.aggregator.add_history(event)
            self.aggregator.set_now_calling(event)
            self.aggregator.add_recent_call(event)
            self.render()

    def _schedule_highlight_expiry(self, loop: asyncio.AbstractEventLoop) -> None:
        # Re-render once the "just called" highlight has expired.
        now = loop.time()
        self._highlight_timers = [t for t in self._highlight_timers if not t.cancelled() and t.when() > now]
        self._highlight_timers.append(loop.call_later(self.config.highlight_seconds, self.render))

    def _on_job_start(self, job: AnnouncementJob) -> None:
        event = self._announcing.popleft()
        self.aggregator.set_now_calling(event)
        self.aggregator.add_recent_call(event)
        self.render()

    def _on_push(self, push: PushEvent) -> None:
        if push.type == "queue_called":
            try:
                event = CallEvent.from_payload(push.data, now=self._clock())
            except PayloadError as e:
                logger.warning("dropping queue_called: %s", e)
                return
            self.ingest(event)
            return

        if push.type in ("queue_updated", "queue_added"):
            data = push.data if isinstance(push.data, dict) else {}
            count = data.get("waiting_count")
            if isinstance(count, int) and not isinstance(count, bool):
                self.aggregator.waiting_count = count
            # Something changed server-side; pull the authoritative state now.
            self._resync.set()
            self.render()
            return

        if push.type == "settings_updated":
            # The server broadcasts the saved settings as one flat name -> value map.
            data = push.data if isinstance(push.data, dict) else {}
            changed = {k: v for k, v in data.items() if isinstance(k, str)}
            if changed:
                self.settings.update(changed)
                logger.info("settings updated: %s", ", ".join(sorted(changed)))
            return

        if push.type == "connected":
            logger.debug("push channel subscribed: %s", push.data)

    def _on_status(self, connected: bool) -> None:
        self.aggregator.connected = connected
        logger.info("push channel %s", "connected" if connected else "down, polling")
        self.render()

    # -------------------- reconciliation --------------------

    async def pull_snapshots(self) -> None:
        """Authoritative resync of the Store from the server."""
        try:
            counters = await self.api.active_counters()
            records = await self.api.called_today(self._clock().date())
        except FetchError as e:
            logger.warning("snapshot pull failed: %s", e)
            return
        self._remember_labels(counters)
        self.store.reconcile_from_snapshot_pull(snapshots_from_called_queues(records))

        try:
            count = await self.api.waiting_count()
        except FetchError as e:
            logger.debug("stats fetch failed: %s", e)
        else:
            if count is not None:
                self.aggregator.waiting_count = count
        self.render()

    def _remember_labels(self, counters: list[CounterInfo]) -> None:
        self.labels = {c.counter_id: c.label for c in counters}

    async def _pull_loop(self) -> None:
        while True:
            self._resync.clear()
            await self.pull_snapshots()
            try:
                await asyncio.wait_for(self._resync.wait(), timeout=self.config.pull_interval)
            except asyncio.TimeoutError:
                pass

    async def _every(self, interval: float, fn: Callable[[], Any]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await fn()
            except Exception:
                logger.exception("periodic task failed")

    # -------------------- audio + rendering --------------------

    def enable_audio(self) -> None:
        self.announcer.enable()
        save_audio_enabled(True, self.config.preferences_path or DEFAULT_PATH)
        self.render()

    def disable_audio(self) -> None:
        self.announcer.disable()
        save_audio_enabled(False, self.config.preferences_path or DEFAULT_PATH)
        self.render()

    def screen(self) -> Screen:
        counter_ids = set(self.labels)
        counter_ids.update(s.counter_id for s in self.store.active())
        if self.config.counter_id is not None:
            counter_ids &= {self.config.counter_id}
            counter_ids.add(self.config.counter_id)
        lines = []
        for cid in sorted(counter_ids):
            snap = self.store.get(cid)
            lines.append(
                CounterLine(
                    counter_id=cid,
                    label=self.labels.get(cid, f"Loket {cid}"),
                    ticket_number=snap.ticket_number if snap is not None else None,
                    status=self.store.status(cid),
                )
            )
        return Screen(
            role=self.config.role,
            view=self.aggregator.render(),
            counters=tuple(lines),
            audio_enabled=self.announcer.enabled,
        )

    def render(self) -> None:
        if self.renderer is None:
            return
        try:
            self.renderer(self.screen())
        except Exception:
            logger.exception("render failed")

    async def _render_async(self) -> None:
        self.render()
