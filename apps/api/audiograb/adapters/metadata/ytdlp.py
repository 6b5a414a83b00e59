"""Rich metadata from ``yt-dlp --dump-json``."""

from __future__ import annotations

import json

from audiograb.adapters.metadata.base import (
    DEFAULT_DURATION_SECONDS,
    MetadataSource,
    MetadataSourceError,
    fallback_thumbnail,
)
from audiograb.adapters.process import ProcessError, run_process
from audiograb.schemas.job import VideoInfo


class YtDlpMetadataSource(MetadataSource):
    name = "yt-dlp"

    def __init__(self, *, binary: str, timeout: float) -> None:
        self._binary = binary
        self._timeout = timeout

    async def fetch(self, url: str, video_id: str) -> VideoInfo:
        try:
            result = await run_process(
                [self._binary, "--dump-json", "--no-warnings", "--no-playlist", url],
                timeout=self._timeout,
            )
        except ProcessError as exc:
            raise MetadataSourceError(str(exc)) from exc

        try:
            info = json.loads(result.stdout)
        except ValueError as exc:
            raise MetadataSourceError("yt-dlp returned invalid JSON") from exc
        if not isinstance(info, dict):
            raise MetadataSourceError("yt-dlp returned an unexpected payload")

        raw_duration = info.get("duration")
        duration = int(raw_duration) if isinstance(raw_duration, (int, float)) and raw_duration > 0 else None
        return VideoInfo(
            title=str(info.get("title") or "Unknown Title"),
            thumbnail=str(info.get("thumbnail") or fallback_thumbnail(video_id)),
            duration=duration if duration is not None else DEFAULT_DURATION_SECONDS,
            duration_is_estimate=duration is None,
        )
