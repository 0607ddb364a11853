"""Transcription Pipeline — turns recorded audio segments into one growing transcript.

Every accepted segment is appended to the session's audio buffer and a
single worker re-transcribes the whole buffer, one call at a time, in
arrival order. Two concurrent calls over the same accumulated audio would
race, so the queue is the only path to the transcription service.
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable

from sidekick.errors import SidekickError
from sidekick.state import AudioSegment
from sidekick.utils.parsing import classify_upstream_error

TranscribeFn = Callable[[bytes, str], Awaitable[str]]

_STOP = object()


class TranscriptionPipeline:
    def __init__(
        self,
        transcribe: TranscribeFn,
        on_transcript: Callable[[str], None] | None = None,
        on_error: Callable[[SidekickError], None] | None = None,
    ):
        self._transcribe = transcribe
        self._on_transcript = on_transcript
        self._on_error = on_error
        self._chunks: list[bytes] = []
        self._mime_type = "audio/webm"
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self.transcript = ""
        self.error: str | None = None
        self.busy = False

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self, mime_type: str = "audio/webm") -> None:
        """Reset the buffer and start the worker for a new recording session."""
        if self.running:
            raise RuntimeError("Transcription pipeline is already running.")
        self._chunks = []
        self._mime_type = mime_type or "audio/webm"
        self.transcript = ""
        self.error = None
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(self._queue))

    def submit(self, segment: AudioSegment) -> bool:
        """Queue a segment. Empty segments are ignored; returns whether it was accepted."""
        if not self.running:
            raise RuntimeError("Transcription pipeline is not running.")
        if not segment.data:
            return False
        self._chunks.append(segment.data)
        self._queue.put_nowait(len(self._chunks))
        return True

    async def finish(self) -> str:
        """Drain queued segments, stop the worker, then run one forced pass.

        Returns the final transcript.
        """
        if self.running:
            self._queue.put_nowait(_STOP)
            await self._worker
        self._worker = None
        await self._transcribe_accumulated(force=True)
        return self.transcript

    async def _run(self, queue: asyncio.Queue) -> None:
        while True:
            item = await queue.get()
            try:
                if item is _STOP:
                    return
                await self._transcribe_accumulated()
            finally:
                queue.task_done()

    async def _transcribe_accumulated(self, force: bool = False) -> None:
        blob = b"".join(self._chunks)
        if not blob:
            return

        self.busy = True
        try:
            text = (await self._transcribe(blob, self._mime_type) or "").strip()
        except Exception as exc:
            error = classify_upstream_error(exc, "Unexpected transcription error.")
            self.error = f"Transcription failed: {error}"
            print(f"[sidekick] [transcribe] {exc!r}", file=sys.stderr)
            if self._on_error:
                self._on_error(error)
            return
        finally:
            self.busy = False

        if not text:
            return
        if text == self.transcript and not force:
            return

        self.error = None
        self.transcript = text
        if self._on_transcript:
            self._on_transcript(text)
