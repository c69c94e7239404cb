"""Announcement sequencer: one announcement at a time, in arrival order.

A burst of calls (several counters pressing "next" in the same second) must be
presented one by one: the board switches to a ticket exactly when its
announcement starts, and the next announcement only starts once the previous
one has finished plus a short pause.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable

from .announcer import AudioAnnouncer
from .models import AnnouncementJob

logger = logging.getLogger(__name__)

StartHook = Callable[[AnnouncementJob], Any]


class AnnouncementSequencer:
    def __init__(
        self,
        announcer: AudioAnnouncer,
        *,
        on_start: StartHook | None = None,
        pause: float = 0.3,
    ) -> None:
        self.announcer = announcer
        self.on_start = on_start
        self.pause = pause

        self._queue: deque[AnnouncementJob] = deque()
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._busy = False
        self._worker: asyncio.Task[None] | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending(self) -> int:
        return len(self._queue)

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run(), name="announcement-sequencer")

    async def stop(self) -> None:
        worker = self._worker
        self._worker = None
        if worker is None:
            return
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass

    def enqueue(self, job: AnnouncementJob) -> None:
        self._queue.append(job)
        self._idle.clear()
        self._wakeup.set()
        logger.debug("queued announcement %s (pending=%d)", job.ticket_number, len(self._queue))

    async def join(self) -> None:
        """Wait until every queued job has been announced."""
        await self._idle.wait()

    async def _run(self) -> None:
        while True:
            if not self._queue:
                self._busy = False
                self._idle.set()
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            job = self._queue.popleft()
            self._busy = True
            await self._process(job)
            await asyncio.sleep(self.pause)

    async def _process(self, job: AnnouncementJob) -> None:
        if self.on_start is not None:
            try:
                self.on_start(job)
            except Exception:
                logger.exception("display update failed for %s", job.ticket_number)
        try:
            await self.announcer.play(job)
        except Exception:
            logger.exception("announcement failed for %s", job.ticket_number)
