import asyncio

import pytest

from queue_caller.models import AnnouncementJob
from queue_caller.sequencer import AnnouncementSequencer


class RecordingAnnouncer:
    def __init__(self, log, *, duration=0.02, fail_on=()):
        self.log = log
        self.duration = duration
        self.fail_on = set(fail_on)
        self.active = 0
        self.max_active = 0
        self.starts = {}
        self.ends = {}

    async def play(self, job, on_complete=None):
        loop = asyncio.get_running_loop()
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.starts[job.ticket_number] = loop.time()
        self.log.append(("play", job.ticket_number))
        try:
            await asyncio.sleep(self.duration)
            if job.ticket_number in self.fail_on:
                raise RuntimeError("speaker unplugged")
        finally:
            self.active -= 1
            self.ends[job.ticket_number] = loop.time()
            self.log.append(("done", job.ticket_number))
        if on_complete is not None:
            on_complete()


def job(ticket):
    return AnnouncementJob(ticket, "Loket 1", ticket[0])


@pytest.mark.asyncio
async def test_jobs_run_one_at_a_time_in_fifo_order():
    log = []
    announcer = RecordingAnnouncer(log)
    seq = AnnouncementSequencer(announcer, on_start=lambda j: log.append(("display", j.ticket_number)), pause=0.05)
    seq.start()
    try:
        for t in ("A001", "A002", "A003"):
            seq.enqueue(job(t))
        await asyncio.wait_for(seq.join(), timeout=2)
    finally:
        await seq.stop()

    assert announcer.max_active == 1
    assert log == [
        ("display", "A001"), ("play", "A001"), ("done", "A001"),
        ("display", "A002"), ("play", "A002"), ("done", "A002"),
        ("display", "A003"), ("play", "A003"), ("done", "A003"),
    ]
    # each job starts only after the previous one finished plus the pause
    assert announcer.starts["A002"] - announcer.ends["A001"] >= 0.04
    assert announcer.starts["A003"] - announcer.ends["A002"] >= 0.04


@pytest.mark.asyncio
async def test_display_update_happens_at_job_start_not_enqueue():
    log = []
    announcer = RecordingAnnouncer(log, duration=0.05)
    seq = AnnouncementSequencer(announcer, on_start=lambda j: log.append(("display", j.ticket_number)), pause=0.01)
    seq.start()
    try:
        # both arrive in the same tick
        seq.enqueue(job("A001"))
        seq.enqueue(job("B001"))
        await asyncio.sleep(0.02)
        assert ("display", "A001") in log
        assert ("display", "B001") not in log
        assert seq.busy
        assert seq.pending == 1
        await asyncio.wait_for(seq.join(), timeout=2)
    finally:
        await seq.stop()

    assert log.index(("display", "B001")) > log.index(("done", "A001"))
    assert not seq.busy


@pytest.mark.asyncio
async def test_failing_announcement_does_not_stall_queue():
    log = []
    announcer = RecordingAnnouncer(log, duration=0.0, fail_on={"A001"})
    seq = AnnouncementSequencer(announcer, pause=0.0)
    seq.start()
    try:
        seq.enqueue(job("A001"))
        seq.enqueue(job("A002"))
        await asyncio.wait_for(seq.join(), timeout=2)
    finally:
        await seq.stop()

    assert ("done", "A002") in log


@pytest.mark.asyncio
async def test_failing_display_hook_still_plays():
    log = []
    announcer = RecordingAnnouncer(log, duration=0.0)

    def broken(_job):
        raise RuntimeError("render failed")

    seq = AnnouncementSequencer(announcer, on_start=broken, pause=0.0)
    seq.start()
    try:
        seq.enqueue(job("A001"))
        await asyncio.wait_for(seq.join(), timeout=2)
    finally:
        await seq.stop()

    assert log == [("play", "A001"), ("done", "A001")]
