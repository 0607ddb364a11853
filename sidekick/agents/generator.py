"""Generator Agent — turns the conversation (plus an optional live transcript) into artifacts.

The model returns a JSON object with: assistant_response (short coaching
reply), summary (markdown), architecture (Mermaid flowchart TD source) and
next_steps (3-20 actionable tasks). The raw text is fence-stripped and
decoded by sidekick.utils.parsing.decode_artifacts.
"""

import os
import sys

from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from sidekick.config import get_config
from sidekick.errors import SidekickError
from sidekick.state import ArtifactTriple
from sidekick.utils.parsing import classify_upstream_error, decode_artifacts

API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

SYSTEM_PROMPT = """\
You are FDE Sidekick, a hackathon planning copilot.

Return ONLY valid JSON with keys: assistant_response, summary, architecture, next_steps.
- summary: markdown with sections: Problem, Users, Solution, Constraints, Open Questions.
- architecture: valid Mermaid flowchart in flowchart TD format.
- next_steps: array of concise actionable tasks (3 to 20 items).
- assistant_response: short coaching response in <= 80 words.

Never include markdown code fences.
"""

LIVE_TRANSCRIPT_NOTE = (
    "Live voice transcript (in-progress, not final): {transcript}\n"
    "Use it to refresh artifacts now."
)


def provider_name() -> str:
    return str(get_config().get("generation_provider", "openai")).lower()


def model_name() -> str:
    config = get_config()
    if provider_name() == "openai":
        return os.environ.get("OPENAI_CHAT_MODEL") or config.get("generation_model", "gpt-4.1-mini")
    return config["generation_model"]


def _build_llm():
    """Instantiate the configured chat model."""
    provider = provider_name()
    temperature = get_config().get("temperature", 0.35)

    if provider == "openai":
        return ChatOpenAI(
            model=model_name(),
            temperature=temperature,
            model_kwargs={"response_format": {"type": "json_object"}},
        )
    if provider == "google":
        return ChatGoogleGenerativeAI(model=model_name(), temperature=temperature)
    if provider == "anthropic":
        return ChatAnthropic(model=model_name(), temperature=temperature)
    raise SidekickError(f"Unknown generation_provider '{provider}'.")


def build_messages(messages: list[dict], live_transcript: str = "") -> list[dict]:
    """Construct the model prompt: system, conversation, then the transcript note."""
    prompt = [{"role": "system", "content": SYSTEM_PROMPT}]
    prompt.extend({"role": m["role"], "content": m["content"]} for m in messages)

    transcript = (live_transcript or "").strip()
    if transcript:
        prompt.append({
            "role": "user",
            "content": LIVE_TRANSCRIPT_NOTE.format(transcript=transcript),
        })
    return prompt


async def generate_artifacts(messages: list[dict], live_transcript: str = "") -> ArtifactTriple:
    """Call the configured model and decode its reply into an ArtifactTriple.

    Raises SchemaDecodeError when the reply does not fit the schema and the
    upstream taxonomy errors (auth, rate limit, network) otherwise. Nothing
    is retried.
    """
    prompt = build_messages(messages, live_transcript)

    try:
        llm = _build_llm()
        response = await llm.ainvoke(prompt)
    except SidekickError:
        raise
    except Exception as exc:
        error = classify_upstream_error(exc, "Artifact generation failed.")
        print(f"[sidekick] [generate] {exc!r}", file=sys.stderr)
        raise error from exc

    content = response.content
    if isinstance(content, list):
        # Some providers return content blocks instead of a plain string.
        content = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return decode_artifacts(content or "{}")
