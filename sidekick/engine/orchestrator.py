"""Turn Orchestrator — owns the conversation history and drives typed chat turns."""

from sidekick.state import GREETING, ConversationHistory
from sidekick.utils.validator import validate_turn_text


class TurnOrchestrator:
    def __init__(self, coordinator, history: ConversationHistory | None = None):
        self.history = history if history is not None else ConversationHistory(
            [{"role": "assistant", "content": GREETING}]
        )
        self._coordinator = coordinator

    async def send(self, text: str) -> dict | None:
        """Append a user turn and regenerate artifacts from the full history.

        Returns the generated payload, or None when the call failed (the
        error is kept on the coordinator).
        """
        content = validate_turn_text(text)
        self.history.append("user", content)
        return await self._coordinator.run_turn(
            self.history.snapshot(),
            on_reply=self.record_reply,
        )

    def record_reply(self, reply: str) -> None:
        self.history.append("assistant", reply)

    def record_voice_turn(self, transcript: str, preview: str = "") -> None:
        """Fold a finished recording into the history as a user/assistant pair."""
        self.history.append("user", transcript)
        if preview.strip():
            self.history.append("assistant", preview.strip())
