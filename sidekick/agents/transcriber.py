"""Transcriber Agent — sends accumulated audio to the OpenAI transcription API."""

import sys

import openai
from openai import AsyncOpenAI

from sidekick.config import get_config
from sidekick.errors import TransientNetworkError
from sidekick.utils.parsing import classify_upstream_error


def _build_client() -> AsyncOpenAI:
    return AsyncOpenAI()


async def transcribe_audio(data: bytes, filename: str = "recording.webm", mime_type: str = "audio/webm") -> str:
    """Transcribe one audio blob and return the stripped text."""
    model = get_config().get("transcription_model", "whisper-1")
    client = None
    try:
        client = _build_client()
        result = await client.audio.transcriptions.create(
            model=model,
            file=(filename or "recording.webm", data, mime_type or "audio/webm"),
        )
    except (openai.APITimeoutError, openai.APIConnectionError) as exc:
        print(f"[sidekick] [transcribe] {exc!r}", file=sys.stderr)
        raise TransientNetworkError("Transcription failed.", str(exc)) from exc
    except openai.OpenAIError as exc:
        # Also covers client construction, e.g. a missing API key.
        print(f"[sidekick] [transcribe] {exc!r}", file=sys.stderr)
        raise classify_upstream_error(exc, "Transcription failed.") from exc
    finally:
        if client is not None:
            await client.close()

    text = result if isinstance(result, str) else getattr(result, "text", "")
    return (text or "").strip()
