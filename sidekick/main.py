"""Entry point: interactive sidekick session in the terminal."""

import asyncio
import sys

from sidekick.config import get_config
from sidekick.engine.client import SidekickClient
from sidekick.engine.devices import FileReplayDevice
from sidekick.engine.session import LiveSession
from sidekick.engine.snapshot import SnapshotStore
from sidekick.engine.store import ArtifactStore
from sidekick.errors import InputValidationError
from sidekick.state import ArtifactTriple
from sidekick.utils.exporter import export_artifacts

HELP = """\
Commands:
  <text>               send a chat turn
  /record FILE         replay an audio file as a live recording (Enter stops it)
  /rename OLD => NEW   rename a node label in the architecture diagram
  /export [DIR]        write summary.md, architecture.mmd, next_steps.md
  /show                print the current artifacts
  /quit                exit
"""


def _render_artifacts(artifacts: ArtifactTriple) -> str:
    lines = []
    if artifacts["assistant_response"]:
        lines.append(f"Sidekick: {artifacts['assistant_response']}")
        lines.append("")
    lines.append(artifacts["summary"])
    lines.append("")
    lines.append("## Architecture")
    lines.append("")
    lines.append(artifacts["architecture"])
    lines.append("")
    lines.append("## Next Steps")
    lines.append("")
    for i, step in enumerate(artifacts["next_steps"], 1):
        lines.append(f"{i}. {step}")
    return "\n".join(lines)


def _local_services():
    """In-process services, bypassing the HTTP server."""
    from sidekick.agents.generator import generate_artifacts
    from sidekick.agents.transcriber import transcribe_audio

    async def transcribe(audio: bytes, mime_type: str) -> str:
        extension = "m4a" if "mp4" in mime_type else "webm"
        return await transcribe_audio(audio, f"recording.{extension}", mime_type)

    return generate_artifacts, transcribe


async def _ask(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def _record(session: LiveSession, path: str) -> None:
    started = await session.start_recording(FileReplayDevice(path))
    if not started:
        print(f"[sidekick] Recording failed: {session.mic_error}")
        return

    await _ask("[sidekick] Recording... press Enter to stop. ")
    await session.stop_recording()

    if session.pipeline.error:
        print(f"[sidekick] {session.pipeline.error}")
    if session.transcript.text:
        print(f"[sidekick] Transcript: {session.transcript.text}")
    if session.coordinator.error:
        print(f"[sidekick] {session.coordinator.error}")


async def _handle(session: LiveSession, line: str) -> bool:
    """Handle one input line. Returns False when the session should end."""
    if line in ("/quit", "/exit"):
        return False
    if line == "/help":
        print(HELP)
    elif line == "/show":
        print(_render_artifacts(session.store.current))
    elif line.startswith("/export"):
        target = line[len("/export"):].strip() or None
        for path in export_artifacts(session.store.current, target):
            print(f"[sidekick] Wrote {path}")
    elif line.startswith("/rename"):
        old, sep, new = line[len("/rename"):].partition("=>")
        if not sep:
            print("Usage: /rename OLD => NEW")
        elif session.store.rename_node(old, new):
            print(session.store.current["architecture"])
        else:
            print("[sidekick] Label not found; diagram unchanged.")
    elif line.startswith("/record"):
        path = line[len("/record"):].strip()
        if not path:
            print("Usage: /record FILE")
        else:
            await _record(session, path)
    else:
        payload = await session.send(line)
        if payload is None and session.coordinator.error:
            print(f"[sidekick] {session.coordinator.error}")
        elif payload is not None:
            print(f"Sidekick: {payload['assistant_response']}")
    return True


async def run(first_turn: str = "", local: bool = False, api_url: str | None = None) -> None:
    """Run an interactive session until /quit or EOF.

    Args:
        first_turn: Optional text sent as the opening chat turn.
        local: Call the model services in-process instead of through the server.
        api_url: Override for the server base URL.
    """
    config = get_config()
    store = ArtifactStore(SnapshotStore(config.get("snapshot_dir", "~/.fde-sidekick")))
    store.subscribe(
        lambda artifacts: print(f"[sidekick] Artifacts updated ({len(artifacts['next_steps'])} next steps)")
    )

    client = None
    if local:
        generate, transcribe = _local_services()
    else:
        client = SidekickClient(api_url)
        generate, transcribe = client.generate, client.transcribe

    session = LiveSession(generate, transcribe, store=store)
    print(session.history[0]["content"])
    print(HELP)

    try:
        if first_turn.strip():
            await _handle(session, first_turn.strip())
        while True:
            try:
                line = (await _ask("> ")).strip()
            except EOFError:
                break
            if not line:
                continue
            try:
                if not await _handle(session, line):
                    break
            except InputValidationError as exc:
                print(f"[sidekick] {exc}")
    finally:
        if session.recording:
            await session.stop_recording()
        if client is not None:
            await client.aclose()


def main() -> None:
    """CLI entry point. Optional idea words become the first turn."""
    local = False
    api_url = None
    args = sys.argv[1:]

    if "--local" in args:
        local = True
        args.remove("--local")

    if "--api-url" in args:
        index = args.index("--api-url")
        if index + 1 >= len(args):
            print("Usage: sidekick [--local] [--api-url URL] [idea...]", file=sys.stderr)
            raise SystemExit(2)
        api_url = args[index + 1]
        del args[index:index + 2]

    try:
        asyncio.run(run(" ".join(args), local=local, api_url=api_url))
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
