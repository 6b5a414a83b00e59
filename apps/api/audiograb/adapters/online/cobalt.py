"""cobalt JSON API client."""

from __future__ import annotations

from pathlib import Path

import httpx

from audiograb.adapters.online.base import OnlineService, OnlineServiceError

_CHUNK_SIZE = 64 * 1024


class CobaltService(OnlineService):
    name = "cobalt"

    def __init__(self, *, endpoint: str, timeout: float, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    async def download(self, url: str, destination: Path) -> Path:
        request_body = {
            "url": url,
            "vCodec": "h264",
            "vQuality": "480",
            "aFormat": "mp3",
            "isAudioOnly": True,
        }
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.post(self._endpoint, json=request_body, headers=headers)
                if response.status_code >= 400:
                    raise OnlineServiceError(f"cobalt rejected request with {response.status_code}")
                payload = response.json()
                if not isinstance(payload, dict) or payload.get("status") != "success" or not payload.get("url"):
                    raise OnlineServiceError("cobalt returned no audio URL")

                async with client.stream("GET", str(payload["url"])) as audio:
                    if audio.status_code >= 400:
                        raise OnlineServiceError(f"cobalt audio fetch failed with {audio.status_code}")
                    with destination.open("wb") as handle:
                        async for chunk in audio.aiter_bytes(_CHUNK_SIZE):
                            handle.write(chunk)
        except (httpx.HTTPError, ValueError) as exc:
            raise OnlineServiceError(f"cobalt request failed: {type(exc).__name__}") from exc
        return destination
