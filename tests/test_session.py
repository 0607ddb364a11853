"""End-to-end tests of the recording lifecycle with fake device and services."""

import asyncio

from sidekick.engine.devices import FileReplayDevice, guess_mime_type
from sidekick.engine.session import LiveSession
from sidekick.state import GREETING

FINAL = "we want a queue app for clinics with sms alerts"


def _session(generator, transcriber, interval=10.0):
    return LiveSession(generator, transcriber, interval=interval, min_refresh_chars=12)


class TestLiveSession:
    def test_starts_with_greeting(self, fake_generator_cls, fake_transcriber_cls, valid_sidekick_response):
        session = _session(fake_generator_cls(valid_sidekick_response), fake_transcriber_cls(["x"]))
        assert session.history.snapshot() == [{"role": "assistant", "content": GREETING}]

    def test_record_then_stop_forces_one_refresh(
        self, fake_generator_cls, fake_transcriber_cls, fake_device_cls, valid_sidekick_response,
    ):
        generator = fake_generator_cls(valid_sidekick_response)
        transcriber = fake_transcriber_cls(["we want a queue app", FINAL, FINAL])
        device = fake_device_cls(tail=b"tail")
        session = _session(generator, transcriber)

        async def scenario():
            assert await session.start_recording(device) is True
            device.push(b"chunk-1")
            await asyncio.sleep(0.01)
            return await session.stop_recording()

        payload = asyncio.run(scenario())

        assert device.stopped
        assert payload == valid_sidekick_response
        # Only the forced final refresh hit the model (interval never elapsed).
        assert [call[1] for call in generator.calls] == [FINAL]
        # The device's flushed tail was transcribed before the final refresh.
        assert transcriber.calls[-1][0] == b"chunk-1tail"
        assert session.history.snapshot()[-2:] == [
            {"role": "user", "content": FINAL},
            {"role": "assistant", "content": valid_sidekick_response["assistant_response"]},
        ]
        assert not session.recording

    def test_stop_forces_refresh_even_when_fingerprint_matches(
        self, fake_generator_cls, fake_transcriber_cls, fake_device_cls, valid_sidekick_response,
    ):
        generator = fake_generator_cls(valid_sidekick_response)
        transcriber = fake_transcriber_cls([FINAL])
        device = fake_device_cls()
        session = _session(generator, transcriber, interval=0.01)

        async def scenario():
            await session.start_recording(device)
            device.push(b"chunk-1")
            while not generator.calls:
                await asyncio.sleep(0.005)
            await asyncio.sleep(0.05)  # more ticks, all deduplicated
            assert len(generator.calls) == 1
            await session.stop_recording()

        asyncio.run(scenario())
        assert [call[1] for call in generator.calls] == [FINAL, FINAL]

    def test_empty_recording_adds_nothing(
        self, fake_generator_cls, fake_transcriber_cls, fake_device_cls, valid_sidekick_response,
    ):
        generator = fake_generator_cls(valid_sidekick_response)
        session = _session(generator, fake_transcriber_cls(["unused"]))
        device = fake_device_cls()

        async def scenario():
            await session.start_recording(device)
            return await session.stop_recording()

        assert asyncio.run(scenario()) is None
        assert generator.calls == []
        assert len(session.history) == 1

    def test_device_failure_sets_mic_error(
        self, fake_generator_cls, fake_transcriber_cls, fake_device_cls, valid_sidekick_response,
    ):
        session = _session(fake_generator_cls(valid_sidekick_response), fake_transcriber_cls(["x"]))
        device = fake_device_cls(fail_with=PermissionError("denied"))

        assert asyncio.run(session.start_recording(device)) is False
        assert session.mic_error == "Microphone permission denied."
        assert not session.recording

    def test_typed_turn_through_session(self, fake_generator_cls, fake_transcriber_cls, valid_sidekick_response):
        generator = fake_generator_cls(valid_sidekick_response)
        session = _session(generator, fake_transcriber_cls(["x"]))

        asyncio.run(session.send("Build a queueing app"))

        assert generator.calls[0][0][-1] == {"role": "user", "content": "Build a queueing app"}
        assert session.store.current == valid_sidekick_response
        assert len(session.history) == 3


class TestFileReplayDevice:
    def test_replays_file_in_chunks_and_flushes_on_stop(self, tmp_path):
        audio = tmp_path / "idea.webm"
        audio.write_bytes(b"abcdefghij")
        device = FileReplayDevice(audio, chunk_bytes=4, interval=10.0)

        async def scenario():
            segments, mime_type = await device.start()
            first = await segments.__anext__()
            await device.stop()
            rest = [segment async for segment in segments]
            return mime_type, first, rest

        mime_type, first, rest = asyncio.run(scenario())
        assert mime_type == "audio/webm"
        assert first.data == b"abcd"
        assert b"".join(s.data for s in rest) == b"efghij"

    def test_missing_file_raises(self, tmp_path):
        device = FileReplayDevice(tmp_path / "missing.webm")
        try:
            asyncio.run(device.start())
        except FileNotFoundError:
            pass
        else:
            raise AssertionError("expected FileNotFoundError")

    def test_guess_mime_type(self, tmp_path):
        assert guess_mime_type(tmp_path / "a.m4a") == "audio/mp4"
        assert guess_mime_type(tmp_path / "a.webm") == "audio/webm"


class TestLiveSessionFailures:
    def test_transcriber_crash_still_runs_final_refresh(
        self, fake_generator_cls, fake_transcriber_cls, fake_device_cls, valid_sidekick_response,
    ):
        generator = fake_generator_cls(valid_sidekick_response)
        transcriber = fake_transcriber_cls(["unused", FINAL])
        transcriber.errors[0] = RuntimeError("no API key")
        device = fake_device_cls(tail=b"tail")
        session = _session(generator, transcriber)

        async def scenario():
            await session.start_recording(device)
            device.push(b"chunk-1")
            await asyncio.sleep(0.01)
            return await session.stop_recording()

        payload = asyncio.run(scenario())

        assert payload == valid_sidekick_response
        assert [call[1] for call in generator.calls] == [FINAL]
        assert session.history.snapshot()[-2]["content"] == FINAL
