"""Lightweight metadata from the public oEmbed endpoint."""

from __future__ import annotations

import httpx

from audiograb.adapters.metadata.base import (
    DEFAULT_DURATION_SECONDS,
    MetadataSource,
    MetadataSourceError,
    fallback_thumbnail,
)
from audiograb.schemas.job import VideoInfo


class OEmbedMetadataSource(MetadataSource):
    """oEmbed carries a title but no duration, so duration is always estimated."""

    name = "oembed"

    def __init__(self, *, endpoint: str, timeout: float, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, url: str, video_id: str) -> VideoInfo:
        params = {"url": url, "format": "json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._endpoint, params=params)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise MetadataSourceError(f"oEmbed lookup failed: {type(exc).__name__}") from exc

        if not isinstance(payload, dict):
            raise MetadataSourceError("oEmbed returned an unexpected payload")
        return VideoInfo(
            title=str(payload.get("title") or "Unknown Title"),
            thumbnail=fallback_thumbnail(video_id),
            duration=DEFAULT_DURATION_SECONDS,
            duration_is_estimate=True,
        )
