"""Input validation — checks /api/sidekick payloads and chat turns before any model call."""

from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from sidekick.config import get_config
from sidekick.errors import InputValidationError


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)


class SidekickRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)
    liveTranscript: str = ""


def validate_sidekick_request(payload) -> tuple[list[dict], str]:
    """Validate a raw /api/sidekick body.

    Returns (messages, live_transcript) with the transcript stripped.
    Raises InputValidationError on any schema or length violation.
    """
    if payload is None:
        payload = {}
    try:
        request = SidekickRequest.model_validate(payload)
    except ValidationError as exc:
        raise InputValidationError("Invalid request payload.", describe_validation_error(exc)) from exc

    limit = get_config().get("max_message_chars", 12000)
    for i, message in enumerate(request.messages):
        if len(message.content) > limit:
            raise InputValidationError(
                "Invalid request payload.",
                f"messages.{i}.content exceeds {limit} characters.",
            )
    if len(request.liveTranscript) > limit:
        raise InputValidationError(
            "Invalid request payload.",
            f"liveTranscript exceeds {limit} characters.",
        )

    messages = [m.model_dump() for m in request.messages]
    return messages, request.liveTranscript.strip()


def validate_turn_text(text: str) -> str:
    """Validate that a typed chat turn is a non-empty string.

    Returns the stripped input on success.
    Raises InputValidationError if input is empty or whitespace-only.
    """
    if not isinstance(text, str) or not text.strip():
        raise InputValidationError("Message must be a non-empty string.")
    return text.strip()


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic errors into "loc: msg" pairs joined by "; "."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else err.get("msg", "invalid"))
    return "; ".join(parts)
