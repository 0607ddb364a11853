"""Data shared between the engine components."""

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Literal, TypedDict


class Message(TypedDict):
    role: Literal["user", "assistant"]
    content: str


class ArtifactTriple(TypedDict):
    assistant_response: str  # Short coaching reply from the model.
    summary: str  # Markdown project summary.
    architecture: str  # Mermaid flowchart source.
    next_steps: list[str]  # 3-20 non-empty tasks.


ARTIFACT_FIELDS = ("assistant_response", "summary", "architecture", "next_steps")

MIN_NEXT_STEPS = 3
MAX_NEXT_STEPS = 20

DEFAULT_ARTIFACTS: ArtifactTriple = {
    "assistant_response": "",
    "summary": (
        "## Waiting for input\n\n"
        "Describe your project idea by typing or recording voice to generate live artifacts."
    ),
    "architecture": "flowchart TD\n  A[Idea] --> B[Architecture]\n  B --> C[Build Plan]",
    "next_steps": [
        "Describe the problem and who it serves.",
        "List key constraints (time, team size, APIs).",
        "Define first deliverable for the next hour.",
    ],
}

GREETING = (
    "Describe your project and I will build a live summary, "
    "architecture sketch, and next-step plan."
)


def default_artifacts() -> ArtifactTriple:
    """Return a fresh copy of the default artifact triple."""
    return copy.deepcopy(DEFAULT_ARTIFACTS)


class CoordinatorPhase(Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    TURNING = "turning"


@dataclass(frozen=True)
class AudioSegment:
    data: bytes
    mime_type: str = "audio/webm"


@dataclass(frozen=True)
class PendingRefresh:
    """Single-slot coalesced refresh. Only the latest one survives."""

    transcript: str
    force: bool = False


class ConversationHistory:
    """Append-only list of chat messages for one session."""

    def __init__(self, messages: list[Message] | None = None):
        self._messages: list[Message] = list(messages or [])

    def append(self, role: str, content: str) -> None:
        self._messages.append({"role": role, "content": content})

    def snapshot(self) -> list[Message]:
        """Return a copy safe to hand to a request builder."""
        return [dict(m) for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index):
        return self._messages[index]


class TranscriptState:
    """Best-known transcript of the current recording session.

    Replaced wholesale on every cumulative transcription, never appended to.
    """

    def __init__(self):
        self.text = ""

    def replace(self, text: str) -> None:
        self.text = text

    def reset(self) -> None:
        self.text = ""
