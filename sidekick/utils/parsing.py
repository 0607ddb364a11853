"""Shared parsing utilities for model responses and upstream failures."""

import json
import re

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from sidekick.errors import (
    SchemaDecodeError,
    SidekickError,
    TransientNetworkError,
    UpstreamAuthError,
    UpstreamRateLimitError,
)
from sidekick.state import MAX_NEXT_STEPS, MIN_NEXT_STEPS, ArtifactTriple
from sidekick.utils.validator import describe_validation_error

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

# "- step", "* step", "1. step", "2) step", "[ ] step", "[x] step" and stacks like "- [ ] step"
_LIST_MARKER_RE = re.compile(r"^(?:[-*]\s+|\d+[.)]\s+|\[[ xX]?\]\s*)+")


def strip_fences(text: str) -> str:
    """Strip markdown code fences from LLM output if present."""
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def extract_json_object(raw_text: str) -> dict:
    """Decode a JSON object from model output.

    Tries the fence-stripped text first, then the substring between the
    first '{' and the last '}'. Raises SchemaDecodeError when neither parses
    into an object.
    """
    cleaned = strip_fences(str(raw_text or ""))
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        first = cleaned.find("{")
        last = cleaned.rfind("}")
        if first == -1 or last <= first:
            raise SchemaDecodeError("Model response was not valid JSON.")
        try:
            parsed = json.loads(cleaned[first:last + 1])
        except json.JSONDecodeError as exc:
            raise SchemaDecodeError("Model response was not valid JSON.", str(exc)) from exc

    if not isinstance(parsed, dict):
        raise SchemaDecodeError("Model response was not a JSON object.")
    return parsed


def strip_list_marker(line: str) -> str:
    """Remove leading bullet, number or checkbox markers from a task line."""
    return _LIST_MARKER_RE.sub("", line.strip()).strip()


def split_next_steps(value) -> list[str] | None:
    """Turn a list or newline-separated string into clean task entries.

    Returns None when the value is neither a list nor a string.
    """
    if isinstance(value, list):
        items = ["" if item is None else str(item) for item in value]
    elif isinstance(value, str):
        items = value.splitlines()
    else:
        return None
    return [step for step in (strip_list_marker(item) for item in items) if step]


class SidekickResponse(BaseModel):
    """Shape the model must return. Text fields are trimmed and must be non-empty."""

    assistant_response: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    architecture: str = Field(min_length=1)
    next_steps: list[str] = Field(min_length=MIN_NEXT_STEPS, max_length=MAX_NEXT_STEPS)

    @field_validator("assistant_response", "summary", "architecture", mode="before")
    @classmethod
    def _trim_text(cls, value):
        return value if value is None else str(value).strip()

    @field_validator("next_steps", mode="before")
    @classmethod
    def _split_steps(cls, value):
        steps = split_next_steps(value)
        return value if steps is None else steps


def decode_artifacts(raw_text: str) -> ArtifactTriple:
    """Decode and strictly validate a model response into an ArtifactTriple.

    next_steps may arrive as a list or a newline-separated string; list
    markers are stripped before the MIN_NEXT_STEPS-MAX_NEXT_STEPS check.
    """
    data = extract_json_object(raw_text)
    try:
        response = SidekickResponse.model_validate(data)
    except ValidationError as exc:
        raise SchemaDecodeError("Model output did not match schema.", describe_validation_error(exc)) from exc
    return response.model_dump()


def _status_of(exc: BaseException) -> int | None:
    """Find an HTTP status on an SDK or httpx exception, if it carries one."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_upstream_error(exc: BaseException, fallback_message: str) -> SidekickError:
    """Map a provider/SDK exception onto the sidekick error taxonomy."""
    if isinstance(exc, SidekickError):
        return exc
    if isinstance(exc, (httpx.TimeoutException, httpx.ConnectError)):
        return TransientNetworkError(fallback_message, str(exc) or type(exc).__name__)

    status = _status_of(exc)
    if status == 401:
        return UpstreamAuthError(
            "Upstream authentication failed.",
            "Check the API key in .env and restart the server.",
        )
    if status == 429:
        return UpstreamRateLimitError("Upstream rate limit reached.", "Wait a moment and retry.")

    return SidekickError(fallback_message, str(exc) or type(exc).__name__)
