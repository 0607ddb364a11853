"""Refresh Scheduler — periodic live refresh while recording is active."""

import asyncio
import sys

from sidekick.state import TranscriptState


class RefreshScheduler:
    """Fires a refresh request every `interval` seconds.

    The transcript source is handed in at start() and read on every tick;
    each tick runs as its own task so a slow model call never delays the
    next tick (the coordinator coalesces overlapping requests).
    """

    def __init__(self, coordinator, interval: float = 12.0):
        self._coordinator = coordinator
        self.interval = interval
        self._loop_task: asyncio.Task | None = None
        self._ticks: set[asyncio.Task] = set()

    @property
    def min_chars(self) -> int:
        return self._coordinator.min_refresh_chars

    @property
    def active(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self, transcript: TranscriptState) -> None:
        if self.active:
            return
        self._loop_task = asyncio.create_task(self._run(transcript))

    async def tick(self, transcript: str) -> dict | None:
        """Submit one refresh request. Empty or too-short transcripts are a no-op."""
        text = (transcript or "").strip()
        if len(text) < self.min_chars:
            return None
        return await self._coordinator.request_refresh(text)

    async def stop(self) -> None:
        """Cancel future ticks. A refresh already in flight finishes on its own."""
        if self._loop_task is None:
            return
        self._loop_task.cancel()
        try:
            await self._loop_task
        except asyncio.CancelledError:
            pass
        self._loop_task = None

    async def final_refresh(self, transcript: str) -> dict | None:
        """Force one last refresh after recording stops, ignoring the fingerprint.

        If a call is still in flight the request is parked in the pending
        slot; this waits until it has run.
        """
        text = (transcript or "").strip()
        if not text:
            return None
        payload = await self._coordinator.request_refresh(text, force=True)
        await self._coordinator.wait_idle()
        return payload

    async def _run(self, transcript: TranscriptState) -> None:
        while True:
            await asyncio.sleep(self.interval)
            task = asyncio.create_task(self.tick(transcript.text))
            self._ticks.add(task)
            task.add_done_callback(self._tick_done)

    def _tick_done(self, task: asyncio.Task) -> None:
        self._ticks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            print(f"[sidekick] [refresh] tick failed: {task.exception()!r}", file=sys.stderr)
