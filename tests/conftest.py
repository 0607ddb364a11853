"""Shared fixtures for the sidekick test suite."""

import asyncio

import pytest
from unittest.mock import patch

from sidekick.state import AudioSegment


@pytest.fixture
def base_messages():
    """Minimal conversation history with one user turn."""
    return [{"role": "user", "content": "Build a queueing app"}]


@pytest.fixture
def valid_sidekick_response():
    """Complete valid model response dict."""
    return {
        "assistant_response": "Start with the ticket flow and a single queue.",
        "summary": "## Problem\nLong lines at the clinic.\n\n## Users\nFront desk staff.",
        "architecture": "flowchart TD\n  A[Kiosk] --> B[Queue API]\n  B --> C[(Postgres)]",
        "next_steps": [
            "Sketch the ticket lifecycle.",
            "Stand up the queue API.",
            "Build the kiosk screen.",
        ],
    }


@pytest.fixture
def mock_config(tmp_path):
    """Patch the config singleton with test-friendly values."""
    test_config = {
        "generation_provider": "openai",
        "generation_model": "test-model",
        "temperature": 0.35,
        "transcription_model": "whisper-1",
        "max_audio_bytes": 1024,
        "max_message_chars": 200,
        "live_refresh_interval_s": 0.01,
        "min_refresh_chars": 12,
        "request_timeout_s": 5,
        "server_host": "127.0.0.1",
        "server_port": 8787,
        "api_url": "http://testserver",
        "web_url": "http://localhost:5173",
        "snapshot_dir": str(tmp_path / "snapshots"),
        "output_dir": str(tmp_path / "output"),
    }
    with patch("sidekick.config._config", test_config):
        yield test_config


class FakeGenerator:
    """Stand-in for the generation service.

    Records every call and tracks how many are outstanding at once. When
    `gated` is set, each call blocks until release() is called.
    """

    def __init__(self, response, gated=False):
        self.response = response
        self.gated = gated
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.errors = []
        self._gates = []

    async def __call__(self, messages, live_transcript=""):
        self.calls.append((messages, live_transcript))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gated:
                gate = asyncio.Event()
                self._gates.append(gate)
                await gate.wait()
            else:
                await asyncio.sleep(0)
            if self.errors:
                raise self.errors.pop(0)
            response = self.response(live_transcript) if callable(self.response) else self.response
            return dict(response)
        finally:
            self.in_flight -= 1

    async def release(self):
        """Open the oldest waiting gate, waiting for a call to arrive if needed."""
        while not self._gates:
            await asyncio.sleep(0)
        self._gates.pop(0).set()
        await asyncio.sleep(0)


class FakeTranscriber:
    """Returns one transcript per call, in order, and records the audio it saw."""

    def __init__(self, texts, delay=0.0):
        self.texts = list(texts)
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.errors = {}

    async def __call__(self, audio, mime_type):
        index = len(self.calls)
        self.calls.append((audio, mime_type))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if index in self.errors:
                raise self.errors[index]
            return self.texts[min(index, len(self.texts) - 1)]
        finally:
            self.in_flight -= 1


class FakeDevice:
    """Recording device fed by the test through push()."""

    def __init__(self, mime_type="audio/webm", tail=b"", fail_with=None):
        self.mime_type = mime_type
        self.tail = tail
        self.fail_with = fail_with
        self.stopped = False
        self._queue = None

    async def start(self):
        if self.fail_with is not None:
            raise self.fail_with
        self._queue = asyncio.Queue()
        return self._segments(), self.mime_type

    def push(self, data: bytes):
        self._queue.put_nowait(AudioSegment(data=data, mime_type=self.mime_type))

    async def stop(self):
        self.stopped = True
        if self.tail:
            self.push(self.tail)
        self._queue.put_nowait(None)

    async def _segments(self):
        while True:
            segment = await self._queue.get()
            if segment is None:
                return
            yield segment


@pytest.fixture
def fake_generator_cls():
    return FakeGenerator


@pytest.fixture
def fake_transcriber_cls():
    return FakeTranscriber


@pytest.fixture
def fake_device_cls():
    return FakeDevice
