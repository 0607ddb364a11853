"""Recording device capability.

A device hands out an async stream of audio segments plus the negotiated
MIME type, and stops on request (flushing whatever it still buffers).
"""

import asyncio
import mimetypes
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Protocol

from sidekick.state import AudioSegment


class RecordingDevice(Protocol):
    async def start(self) -> tuple[AsyncIterator[AudioSegment], str]:  # pragma: no cover - interface only
        ...

    async def stop(self) -> None:  # pragma: no cover - interface only
        ...


def guess_mime_type(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in (".m4a", ".mp4"):
        return "audio/mp4"
    if suffix == ".webm":
        return "audio/webm"
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "audio/webm"


class FileReplayDevice:
    """Replays an audio file as if it were being recorded.

    The file is cut into `chunk_bytes` slices emitted every `interval`
    seconds, the way a browser recorder emits timesliced blobs. Since the
    pipeline transcribes the concatenation of all slices, each step sees
    a valid prefix of the original file.
    """

    def __init__(self, path, chunk_bytes: int = 64 * 1024, interval: float = 2.2):
        self.path = Path(path)
        self.chunk_bytes = max(1, int(chunk_bytes))
        self.interval = interval
        self._data = b""
        self._offset = 0
        self._stopped: asyncio.Event | None = None

    async def start(self) -> tuple[AsyncIterator[AudioSegment], str]:
        self._data = await asyncio.to_thread(self.path.read_bytes)
        self._offset = 0
        self._stopped = asyncio.Event()
        mime_type = guess_mime_type(self.path)
        return self._segments(mime_type), mime_type

    async def stop(self) -> None:
        if self._stopped is not None:
            self._stopped.set()

    async def _segments(self, mime_type: str) -> AsyncIterator[AudioSegment]:
        while self._offset < len(self._data) and not self._stopped.is_set():
            chunk = self._data[self._offset:self._offset + self.chunk_bytes]
            self._offset += len(chunk)
            yield AudioSegment(data=chunk, mime_type=mime_type)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        # Flush: on stop, hand over everything not yet emitted as one last segment.
        if self._offset < len(self._data):
            rest = self._data[self._offset:]
            self._offset = len(self._data)
            yield AudioSegment(data=rest, mime_type=mime_type)
