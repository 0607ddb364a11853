"""FastAPI app exposing health, transcription and artifact generation."""

import os
import sys
from datetime import datetime, timezone

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from sidekick.agents import generator, transcriber
from sidekick.config import get_config, project_root
from sidekick.errors import InputValidationError, SidekickError
from sidekick.utils.validator import validate_sidekick_request

app = FastAPI(title="FDE Sidekick")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _required_keys() -> list[str]:
    keys = ["OPENAI_API_KEY"]  # transcription always goes through OpenAI
    generation_key = generator.API_KEY_ENV.get(generator.provider_name())
    if generation_key and generation_key not in keys:
        keys.append(generation_key)
    return keys


def _missing_key() -> str | None:
    for key in _required_keys():
        if not os.environ.get(key):
            return key
    return None


def _dist_path():
    return project_root() / "dist"


def _port() -> int:
    return int(os.environ.get("PORT") or get_config().get("server_port", 8787))


def _error_response(error: SidekickError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.message, "details": error.details or error.message},
    )


def _setup_error(key: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": f"{key} is not set. Copy .env.example to .env and add your key."},
    )


@app.get("/api/health")
async def health():
    config = get_config()
    return {
        "ok": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "hasApiKey": _missing_key() is None,
        "hasDist": _dist_path().exists(),
        "webUrl": config.get("web_url", "http://localhost:5173"),
        "apiUrl": f"http://localhost:{_port()}",
    }


@app.post("/api/transcribe")
async def transcribe(audio: UploadFile | None = File(None)):
    missing = _missing_key()
    if missing:
        return _setup_error(missing)
    if audio is None:
        return _error_response(InputValidationError("Missing audio file."))

    data = await audio.read()
    limit = get_config().get("max_audio_bytes", 25 * 1024 * 1024)
    if not data:
        return _error_response(InputValidationError("Missing audio file."))
    if len(data) > limit:
        return _error_response(InputValidationError("Audio file too large.", f"Limit is {limit} bytes."))

    try:
        text = await transcriber.transcribe_audio(
            data,
            audio.filename or "recording.webm",
            audio.content_type or "audio/webm",
        )
    except SidekickError as exc:
        print(f"[sidekick] [transcribe] {exc}", file=sys.stderr)
        return _error_response(exc)

    return {"text": text}


@app.post("/api/sidekick")
async def sidekick(request: Request):
    missing = _missing_key()
    if missing:
        return _setup_error(missing)

    try:
        body = await request.json()
    except ValueError:
        return _error_response(InputValidationError("Invalid request payload.", "Body is not valid JSON."))

    try:
        messages, live_transcript = validate_sidekick_request(body)
        artifacts = await generator.generate_artifacts(messages, live_transcript)
    except SidekickError as exc:
        print(f"[sidekick] [sidekick] {exc}", file=sys.stderr)
        return _error_response(exc)

    return artifacts


if _dist_path().exists():
    # Registered last so the /api routes above take precedence.
    app.mount("/", StaticFiles(directory=_dist_path(), html=True), name="dist")


def main() -> None:
    """Console entry point: run the API with uvicorn."""
    import uvicorn

    missing = _missing_key()
    if missing:
        # Keep the server bootable so clients can render setup instructions.
        print(f"[sidekick] {missing} is missing. API routes will return setup errors.", file=sys.stderr)

    host = get_config().get("server_host", "0.0.0.0")
    port = _port()
    print(f"[sidekick] server running on http://localhost:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
