"""HTTP client for the sidekick server (the engine's remote services)."""

import json
import time

import httpx

from sidekick.config import get_config
from sidekick.errors import TransientNetworkError, error_for_status


def _extension_for(mime_type: str) -> str:
    return "m4a" if "mp4" in (mime_type or "") else "webm"


class SidekickClient:
    """Async wrapper around /api/sidekick, /api/transcribe and /api/health.

    Non-2xx responses are raised as the matching taxonomy error; transport
    failures become TransientNetworkError. Nothing is retried here.
    """

    def __init__(self, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        config = get_config()
        self._http = httpx.AsyncClient(
            base_url=base_url or config.get("api_url", "http://localhost:8787"),
            timeout=config.get("request_timeout_s", 120),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def generate(self, messages: list[dict], live_transcript: str = "") -> dict:
        payload = await self._request(
            "POST",
            "/api/sidekick",
            json={"messages": messages, "liveTranscript": live_transcript},
        )
        return payload

    async def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        filename = f"recording-progress-{int(time.time() * 1000)}.{_extension_for(mime_type)}"
        payload = await self._request(
            "POST",
            "/api/transcribe",
            files={"audio": (filename, audio, mime_type or "audio/webm")},
        )
        return str(payload.get("text") or "").strip()

    async def health(self) -> dict:
        return await self._request("GET", "/api/health")

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise TransientNetworkError("Request failed.", str(exc) or type(exc).__name__) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_success:
            return payload

        details = payload.get("details")
        if details is not None and not isinstance(details, str):
            details = json.dumps(details)
        raise error_for_status(
            response.status_code,
            payload.get("error") or "Request failed",
            details,
        )
