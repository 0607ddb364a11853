"""Tests for the Refresh Scheduler."""

import asyncio

from sidekick.engine.coordinator import SyncCoordinator
from sidekick.engine.scheduler import RefreshScheduler
from sidekick.engine.store import ArtifactStore
from sidekick.state import ConversationHistory, TranscriptState

LONG = "a transcript long enough to refresh"


def _build(generator, interval=0.01):
    coordinator = SyncCoordinator(generator, ArtifactStore(), ConversationHistory(), min_refresh_chars=12)
    return coordinator, RefreshScheduler(coordinator, interval=interval)


class TestRefreshScheduler:
    def test_short_tick_is_noop(self, fake_generator_cls, valid_sidekick_response):
        generator = fake_generator_cls(valid_sidekick_response)
        _, scheduler = _build(generator)

        async def scenario():
            assert await scheduler.tick("") is None
            assert await scheduler.tick("   too short   ") is None

        asyncio.run(scenario())
        assert generator.calls == []

    def test_tick_submits_trimmed_transcript(self, fake_generator_cls, valid_sidekick_response):
        generator = fake_generator_cls(valid_sidekick_response)
        _, scheduler = _build(generator)

        asyncio.run(scheduler.tick(f"\n  {LONG}  \n"))
        assert generator.calls[0][1] == LONG

    def test_periodic_ticks_deduplicate_unchanged_transcript(self, fake_generator_cls, valid_sidekick_response):
        generator = fake_generator_cls(valid_sidekick_response)
        _, scheduler = _build(generator)
        transcript = TranscriptState()

        async def scenario():
            transcript.replace(LONG)
            scheduler.start(transcript)
            await asyncio.sleep(0.08)
            transcript.replace(LONG + " with more detail")
            await asyncio.sleep(0.08)
            await scheduler.stop()

        asyncio.run(scenario())
        assert [call[1] for call in generator.calls] == [LONG, LONG + " with more detail"]
        assert not scheduler.active

    def test_stop_lets_inflight_refresh_finish(self, fake_generator_cls, valid_sidekick_response):
        generator = fake_generator_cls(valid_sidekick_response, gated=True)
        coordinator, scheduler = _build(generator)
        transcript = TranscriptState()
        transcript.replace(LONG)

        async def scenario():
            scheduler.start(transcript)
            while not generator.calls:
                await asyncio.sleep(0.005)
            await scheduler.stop()
            assert coordinator.busy
            await generator.release()
            await coordinator.wait_idle()

        asyncio.run(scenario())
        assert len(generator.calls) == 1
        assert coordinator.fingerprint == LONG

    def test_final_refresh_is_forced(self, fake_generator_cls, valid_sidekick_response):
        generator = fake_generator_cls(valid_sidekick_response)
        coordinator, scheduler = _build(generator)

        async def scenario():
            await scheduler.tick(LONG)
            await scheduler.final_refresh(LONG)

        asyncio.run(scenario())
        assert [call[1] for call in generator.calls] == [LONG, LONG]

    def test_final_refresh_queues_behind_inflight_call(self, fake_generator_cls, valid_sidekick_response):
        generator = fake_generator_cls(valid_sidekick_response, gated=True)
        coordinator, scheduler = _build(generator)
        final = LONG + " and the last words"

        async def scenario():
            inflight = asyncio.create_task(scheduler.tick(LONG))
            await asyncio.sleep(0)
            finishing = asyncio.create_task(scheduler.final_refresh(final))
            await asyncio.sleep(0)
            assert coordinator.pending.force is True
            await generator.release()
            await generator.release()
            await asyncio.gather(inflight, finishing)

        asyncio.run(scenario())
        assert [call[1] for call in generator.calls] == [LONG, final]
        assert generator.max_in_flight == 1

    def test_final_refresh_with_empty_transcript_does_nothing(self, fake_generator_cls, valid_sidekick_response):
        generator = fake_generator_cls(valid_sidekick_response)
        _, scheduler = _build(generator)

        assert asyncio.run(scheduler.final_refresh("   ")) is None
        assert generator.calls == []

    def test_threshold_comes_from_coordinator(self, fake_generator_cls, valid_sidekick_response):
        generator = fake_generator_cls(valid_sidekick_response)
        coordinator, scheduler = _build(generator)
        coordinator.min_refresh_chars = 40

        assert scheduler.min_chars == 40
        assert asyncio.run(scheduler.tick(LONG)) is None
        assert generator.calls == []
