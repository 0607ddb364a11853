"""Synchronization Coordinator — arbitrates refreshes and turns over one model.

At most one generation call is in flight at any time. The phase variable
is the only guard: requests that arrive while it is not IDLE are folded
into a single pending slot (latest transcript wins) and replayed when the
in-flight call completes. Turns outrank pending refreshes: a waiting turn
runs before any coalesced refresh is replayed.
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable

from sidekick.state import ArtifactTriple, ConversationHistory, CoordinatorPhase, PendingRefresh
from sidekick.utils.parsing import classify_upstream_error

GenerateFn = Callable[[list[dict], str], Awaitable[dict]]


class SyncCoordinator:
    def __init__(
        self,
        generate: GenerateFn,
        store,
        history: ConversationHistory,
        min_refresh_chars: int = 12,
    ):
        self._generate = generate
        self._store = store
        self._history = history
        self.min_refresh_chars = min_refresh_chars

        self.phase = CoordinatorPhase.IDLE
        self.fingerprint = ""
        self.pending: PendingRefresh | None = None
        self.live_preview = ""
        self.error: str | None = None
        self.calls_started = 0

        self._turns_waiting = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def busy(self) -> bool:
        return self.phase is not CoordinatorPhase.IDLE

    def reset_session(self) -> None:
        """Forget the fingerprint, pending slot and preview for a new recording."""
        self.fingerprint = ""
        self.pending = None
        self.live_preview = ""

    async def request_refresh(self, transcript: str, force: bool = False) -> dict | None:
        """Ask for a regeneration from the current transcript.

        Returns the generated payload when this call performed the refresh,
        otherwise None (coalesced, deduplicated, too short, or failed).
        """
        if self.busy or self._turns_waiting:
            self._coalesce(transcript, force)
            return None

        if self.pending is not None:
            # A fresher request supersedes whatever is still parked in the slot.
            force = force or self.pending.force
            self.pending = None
        try:
            return await self._refresh(transcript, force)
        finally:
            await self._drain_pending()

    async def run_turn(
        self,
        messages: list[dict],
        on_reply: Callable[[str], None] | None = None,
    ) -> dict | None:
        """Run a user turn: regenerate from the full history, no transcript note.

        Waits for an in-flight call to finish first, then takes precedence
        over any coalesced refresh. on_reply receives the assistant response
        before pending refreshes are replayed, so they see the full history.
        """
        self._turns_waiting += 1
        try:
            while self.busy:
                await self._idle.wait()
        finally:
            self._turns_waiting -= 1

        self._set_phase(CoordinatorPhase.TURNING)
        payload = None
        try:
            payload = await self._call(messages, "")
            if payload is not None:
                self._store.update(payload)
                reply = str(payload.get("assistant_response") or "").strip()
                if reply and on_reply:
                    on_reply(reply)
        finally:
            self._set_phase(CoordinatorPhase.IDLE)
            await self._drain_pending()
        return payload

    async def wait_idle(self) -> None:
        """Resolve once nothing is in flight and nothing is pending."""
        while self.busy or self.pending is not None or self._turns_waiting:
            if not self.busy and not self._turns_waiting:
                await self._drain_pending()
                continue
            await self._idle.wait()
            # Let woken turns claim the phase before re-checking.
            await asyncio.sleep(0)

    def _coalesce(self, transcript: str, force: bool) -> None:
        previous_force = self.pending.force if self.pending else False
        self.pending = PendingRefresh(transcript=transcript, force=force or previous_force)

    async def _drain_pending(self) -> None:
        while self.pending is not None and not self.busy and not self._turns_waiting:
            pending, self.pending = self.pending, None
            await self._refresh(pending.transcript, pending.force)

    async def _refresh(self, transcript: str, force: bool) -> dict | None:
        transcript = (transcript or "").strip()
        if len(transcript) < self.min_refresh_chars:
            return None
        if not force and transcript == self.fingerprint:
            return None

        self._set_phase(CoordinatorPhase.REFRESHING)
        try:
            payload = await self._call(self._history.snapshot(), transcript)
            if payload is not None:
                self._store.update(payload)
                self.live_preview = str(payload.get("assistant_response") or "")
                self.fingerprint = transcript
            return payload
        finally:
            self._set_phase(CoordinatorPhase.IDLE)

    async def _call(self, messages: list[dict], transcript: str) -> ArtifactTriple | None:
        self.calls_started += 1
        try:
            payload = await self._generate(messages, transcript)
        except Exception as exc:
            error = classify_upstream_error(exc, "Artifact generation failed.")
            self.error = str(error)
            print(f"[sidekick] [generate] {error}", file=sys.stderr)
            return None
        self.error = None
        return payload

    def _set_phase(self, phase: CoordinatorPhase) -> None:
        self.phase = phase
        if phase is CoordinatorPhase.IDLE:
            self._idle.set()
        else:
            self._idle.clear()
