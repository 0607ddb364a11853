"""Wires the engine together and runs the recording lifecycle.

Recording start resets the transcript and refresh fingerprint, starts the
transcription worker and the refresh scheduler, and pumps device segments
into the pipeline. Stop halts the scheduler, flushes the device, drains
the pipeline, runs the forced final refresh and folds the transcript into
the conversation history.
"""

import asyncio
import sys

from sidekick.config import get_config
from sidekick.engine.coordinator import SyncCoordinator
from sidekick.engine.orchestrator import TurnOrchestrator
from sidekick.engine.scheduler import RefreshScheduler
from sidekick.engine.store import ArtifactStore
from sidekick.engine.transcription import TranscriptionPipeline
from sidekick.state import GREETING, ConversationHistory, TranscriptState


def describe_device_error(exc: Exception) -> str:
    if isinstance(exc, PermissionError):
        return "Microphone permission denied."
    if isinstance(exc, FileNotFoundError):
        return "No microphone device found."
    return str(exc) or "Cannot access microphone"


class LiveSession:
    def __init__(self, generate, transcribe, store: ArtifactStore | None = None,
                 interval: float | None = None, min_refresh_chars: int | None = None):
        config = get_config()
        if interval is None:
            interval = config.get("live_refresh_interval_s", 12)
        if min_refresh_chars is None:
            min_refresh_chars = config.get("min_refresh_chars", 12)

        self.store = store if store is not None else ArtifactStore()
        self.history = ConversationHistory([{"role": "assistant", "content": GREETING}])
        self.transcript = TranscriptState()
        self.coordinator = SyncCoordinator(generate, self.store, self.history, min_refresh_chars)
        self.orchestrator = TurnOrchestrator(self.coordinator, self.history)
        self.pipeline = TranscriptionPipeline(transcribe, on_transcript=self.transcript.replace)
        self.scheduler = RefreshScheduler(self.coordinator, interval)

        self.recording = False
        self.mic_error: str | None = None
        self._device = None
        self._pump: asyncio.Task | None = None

    async def send(self, text: str) -> dict | None:
        return await self.orchestrator.send(text)

    async def start_recording(self, device) -> bool:
        """Acquire the device and begin live transcription. Returns False on failure."""
        if self.recording:
            return False

        self.mic_error = None
        self.coordinator.error = None
        self.transcript.reset()
        self.coordinator.reset_session()

        try:
            segments, mime_type = await device.start()
        except Exception as exc:
            self.mic_error = describe_device_error(exc)
            print(f"[sidekick] [record] {self.mic_error}", file=sys.stderr)
            return False

        self._device = device
        self.pipeline.start(mime_type)
        self._pump = asyncio.create_task(self._pump_segments(segments))
        self.scheduler.start(self.transcript)
        self.recording = True
        return True

    async def stop_recording(self) -> dict | None:
        """Stop recording and return the payload of the forced final refresh, if any."""
        if not self.recording:
            return None
        self.recording = False

        await self.scheduler.stop()
        await self._device.stop()
        await self._pump
        self._device = None
        self._pump = None

        await self.pipeline.finish()
        final_transcript = self.transcript.text.strip()
        if not final_transcript:
            return None

        payload = await self.scheduler.final_refresh(final_transcript)
        preview = str((payload or {}).get("assistant_response") or self.coordinator.live_preview)
        self.orchestrator.record_voice_turn(final_transcript, preview)
        return payload

    async def _pump_segments(self, segments) -> None:
        async for segment in segments:
            self.pipeline.submit(segment)
