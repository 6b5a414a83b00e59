"""Host capability probing for external downloader/transcoder tools."""

from __future__ import annotations

import asyncio
import logging
import platform
import sys
import time
from collections.abc import Callable

from audiograb.adapters.process import ProcessError, run_process
from audiograb.domain.strategy import Capabilities

logger = logging.getLogger(__name__)


class CapabilityProber:
    """Detects yt-dlp, youtube-dl and ffmpeg by running their version command.

    Every probe is bounded by ``probe_timeout`` so a hanging or missing tool
    never stalls request handling. Snapshots are reused for ``cache_seconds``.
    """

    def __init__(
        self,
        *,
        ytdlp_binary: str,
        ffmpeg_binary: str,
        probe_timeout: float,
        cache_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ytdlp_binary = ytdlp_binary
        self._ffmpeg_binary = ffmpeg_binary
        self._probe_timeout = probe_timeout
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._snapshot: Capabilities | None = None
        self._snapshot_at = 0.0

    async def capabilities(self) -> Capabilities:
        now = self._clock()
        if self._snapshot is not None and now - self._snapshot_at < self._cache_seconds:
            return self._snapshot

        ytdlp_version, ffmpeg_version = await asyncio.gather(
            self.probe_version([self._ytdlp_binary, "--version"]),
            self.probe_version([self._ffmpeg_binary, "-version"]),
        )
        versions: dict[str, str] = {}
        if ytdlp_version is not None:
            versions["ytDlp"] = ytdlp_version
        if ffmpeg_version is not None:
            versions["ffmpeg"] = ffmpeg_version

        snapshot = Capabilities(
            has_downloader=ytdlp_version is not None,
            has_transcoder=ffmpeg_version is not None,
            versions=versions,
        )
        logger.info(
            "capabilities.probed has_downloader=%s has_transcoder=%s",
            snapshot.has_downloader,
            snapshot.has_transcoder,
        )
        self._snapshot = snapshot
        self._snapshot_at = now
        return snapshot

    async def full_report(self) -> tuple[dict[str, bool], dict[str, str]]:
        """Probe every known tool, including ones the job lifecycle ignores."""
        ytdlp, youtube_dl, ffmpeg = await asyncio.gather(
            self.probe_version([self._ytdlp_binary, "--version"]),
            self.probe_version(["youtube-dl", "--version"]),
            self.probe_version([self._ffmpeg_binary, "-version"]),
        )
        checks = {
            "yt_dlp": ytdlp is not None,
            "youtube_dl": youtube_dl is not None,
            "ffmpeg": ffmpeg is not None,
            "python": True,
        }
        versions = {"python": f"Python {platform.python_version()}"}
        for key, value in (("ytDlp", ytdlp), ("youtubeDl", youtube_dl), ("ffmpeg", ffmpeg)):
            if value is not None:
                versions[key] = value
        return checks, versions

    async def probe_version(self, args: list[str]) -> str | None:
        try:
            result = await run_process(args, timeout=self._probe_timeout)
        except ProcessError as exc:
            logger.debug("capabilities.probe_failed tool=%s reason=%s", args[0], exc)
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0].strip() if lines else ""


def recommendations(checks: dict[str, bool]) -> list[str]:
    hints: list[str] = []
    if not checks.get("yt_dlp") and not checks.get("youtube_dl"):
        hints.append(f"Install yt-dlp: {sys.executable} -m pip install yt-dlp")
    if not checks.get("ffmpeg"):
        hints.append(_ffmpeg_install_hint())
    if not hints:
        hints.append("All dependencies are installed correctly!")
    return hints


def _ffmpeg_install_hint() -> str:
    system = platform.system().lower()
    if system == "windows":
        return "Install FFmpeg: winget install Gyan.FFmpeg"
    if system == "darwin":
        return "Install FFmpeg: brew install ffmpeg"
    if system == "linux":
        return "Install FFmpeg: sudo apt install ffmpeg"
    return "Install FFmpeg: https://ffmpeg.org/download.html"
