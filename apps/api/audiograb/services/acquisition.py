"""Audio acquisition strategies and the runner that walks them in order.

Every strategy works inside a private staging directory and hands back the
file it produced. The runner publishes the first successful result through
:class:`~audiograb.services.artifacts.ArtifactStore` and always removes the
staging directory afterwards, whatever the outcome.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
from collections.abc import Callable, Sequence

from audiograb.adapters.online import OnlineService, OnlineServiceError
from audiograb.adapters.placeholder import write_placeholder
from audiograb.adapters.process import ProcessError, run_process
from audiograb.core.logging_safety import safe_log_identifier
from audiograb.schemas.job import AudioFormat, StrategyId
from audiograb.services.artifacts import KNOWN_FORMATS, ArtifactError, ArtifactStore, format_from_suffix

logger = logging.getLogger(__name__)

_YTDLP_COMMON_ARGS: tuple[str, ...] = (
    "--no-warnings",
    "--no-playlist",
    "--concurrent-fragments",
    "4",
    "--throttled-rate",
    "100K",
    "--no-check-certificates",
    "--no-mtime",
)
# Leftovers of an interrupted yt-dlp run, never a finished output.
_PARTIAL_SUFFIXES = frozenset({".part", ".ytdl", ".temp"})


class AcquisitionError(Exception):
    """Raised when a strategy, or the whole chain, fails to produce audio."""


class AcquisitionTimeoutError(AcquisitionError):
    """Raised when a run exceeds its overall time budget."""


@dataclass(frozen=True, slots=True)
class AcquisitionRequest:
    url: str
    video_id: str
    staging: Path


@dataclass(frozen=True, slots=True)
class StagedArtifact:
    path: Path
    quality: str


@dataclass(frozen=True, slots=True)
class AcquiredArtifact:
    path: Path
    format: AudioFormat
    size: int
    quality: str
    strategy: StrategyId


class AcquisitionStrategy(ABC):
    strategy_id: StrategyId

    @abstractmethod
    async def attempt(self, request: AcquisitionRequest) -> StagedArtifact:
        """Produce an audio file inside ``request.staging`` or raise :class:`AcquisitionError`."""


def locate_output(staging: Path, video_id: str) -> Path:
    """Find the file an external tool wrote for ``video_id``.

    The container is chosen by the tool, so every known extension is
    accepted. Output only in an unknown extension counts as a failure.
    """
    candidates = [
        entry
        for entry in staging.iterdir()
        if entry.is_file() and entry.name.startswith(f"{video_id}.") and entry.suffix.lower() not in _PARTIAL_SUFFIXES
    ]
    for audio_format in KNOWN_FORMATS:
        for entry in candidates:
            if format_from_suffix(entry) is audio_format:
                return entry
    if candidates:
        names = ", ".join(sorted(entry.suffix or entry.name for entry in candidates))
        raise AcquisitionError(f"tool produced unsupported output: {names}")
    raise AcquisitionError("tool finished without producing an output file")


class _YtDlpStrategy(AcquisitionStrategy):
    quality: str = ""

    def __init__(self, *, binary: str) -> None:
        self._binary = binary

    def build_args(self, request: AcquisitionRequest) -> list[str]:
        template = str(request.staging / f"{request.video_id}.%(ext)s")
        return [self._binary, *self._format_args(), *_YTDLP_COMMON_ARGS, "-o", template, request.url]

    @abstractmethod
    def _format_args(self) -> list[str]:
        """Format selection and post-processing flags."""

    async def attempt(self, request: AcquisitionRequest) -> StagedArtifact:
        args = self.build_args(request)
        logger.debug("acquisition.command strategy=%s tool=%s", self.strategy_id.value, args[0])
        try:
            # The runner bounds the total run time.
            await run_process(args, timeout=None, cwd=request.staging)
        except ProcessError as exc:
            raise AcquisitionError(str(exc)) from exc
        return StagedArtifact(path=locate_output(request.staging, request.video_id), quality=self.quality)


class NativeTranscodeStrategy(_YtDlpStrategy):
    """yt-dlp downloads and ffmpeg transcodes to MP3 in one invocation."""

    strategy_id = StrategyId.NATIVE_TRANSCODE
    quality = "192kbps MP3 (Fast)"

    def _format_args(self) -> list[str]:
        return ["--extract-audio", "--audio-format", "mp3", "--audio-quality", "5"]


class DirectAudioStrategy(_YtDlpStrategy):
    """Smallest available audio track, kept in whatever container it ships in."""

    strategy_id = StrategyId.DIRECT_AUDIO
    quality = "Original"

    def _format_args(self) -> list[str]:
        return ["-f", "worstaudio[ext=m4a]/worstaudio"]

    async def attempt(self, request: AcquisitionRequest) -> StagedArtifact:
        staged = await super().attempt(request)
        audio_format = format_from_suffix(staged.path)
        label = audio_format.value.upper() if audio_format is not None else "Original"
        return StagedArtifact(path=staged.path, quality=f"Fast {label}")


class OnlineFallbackStrategy(AcquisitionStrategy):
    """Races every online service; the first to deliver wins, the rest are cancelled."""

    strategy_id = StrategyId.ONLINE_FALLBACK

    def __init__(self, *, services: Sequence[OnlineService], timeout: float) -> None:
        self._services = list(services)
        self._timeout = timeout

    async def attempt(self, request: AcquisitionRequest) -> StagedArtifact:
        if not self._services:
            raise AcquisitionError("no online services configured")

        tasks: dict[asyncio.Task, OnlineService] = {
            asyncio.create_task(self._fetch(service, request, index)): service
            for index, service in enumerate(self._services)
        }
        failures: list[str] = []
        try:
            pending = set(tasks)
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    exc = task.exception()
                    if exc is None:
                        logger.info(
                            "acquisition.online_winner video_id=%s service=%s",
                            safe_log_identifier(request.video_id, prefix="vid"),
                            tasks[task].name,
                        )
                        return StagedArtifact(path=task.result(), quality="Online Service")
                    failures.append(f"{tasks[task].name}: {exc}")
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        raise AcquisitionError("all online services failed (" + "; ".join(failures) + ")")

    async def _fetch(self, service: OnlineService, request: AcquisitionRequest, index: int) -> Path:
        destination = request.staging / f"{request.video_id}.{index}.mp3"
        try:
            path = await asyncio.wait_for(service.download(request.url, destination), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise OnlineServiceError(f"timed out after {self._timeout}s") from exc
        # Publication renames by id, so the index infix never reaches the canonical name.
        if path.stat().st_size == 0:
            raise OnlineServiceError("empty response body")
        return path


class PlaceholderStrategy(AcquisitionStrategy):
    """Last resort: a short synthesized tone so the caller still gets a file."""

    strategy_id = StrategyId.PLACEHOLDER

    async def attempt(self, request: AcquisitionRequest) -> StagedArtifact:
        destination = request.staging / f"{request.video_id}.wav"
        await asyncio.to_thread(write_placeholder, destination, request.video_id)
        return StagedArtifact(path=destination, quality="Demo")


AttemptListener = Callable[[StrategyId], None]


class AcquisitionRunner:
    def __init__(
        self,
        *,
        artifacts: ArtifactStore,
        strategies: Sequence[AcquisitionStrategy],
        timeout: float,
    ) -> None:
        self._artifacts = artifacts
        self._strategies = {strategy.strategy_id: strategy for strategy in strategies}
        self._timeout = timeout

    async def run(
        self,
        url: str,
        video_id: str,
        chain: Sequence[StrategyId],
        *,
        on_attempt: AttemptListener | None = None,
    ) -> AcquiredArtifact:
        try:
            return await asyncio.wait_for(self._run_chain(url, video_id, chain, on_attempt), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise AcquisitionTimeoutError(f"acquisition exceeded {self._timeout}s") from exc

    async def _run_chain(
        self,
        url: str,
        video_id: str,
        chain: Sequence[StrategyId],
        on_attempt: AttemptListener | None,
    ) -> AcquiredArtifact:
        safe_video_id = safe_log_identifier(video_id, prefix="vid")
        failures: list[str] = []
        for strategy_id in chain:
            strategy = self._strategies.get(strategy_id)
            if strategy is None:
                continue
            if on_attempt is not None:
                on_attempt(strategy_id)

            staging = self._artifacts.create_staging_dir(video_id)
            try:
                staged = await strategy.attempt(AcquisitionRequest(url=url, video_id=video_id, staging=staging))
                info = self._artifacts.publish(video_id, staged.path)
            except (AcquisitionError, ArtifactError, OSError) as exc:
                failures.append(f"{strategy_id.value}: {exc}")
                logger.warning(
                    "acquisition.strategy_failed video_id=%s strategy=%s reason=%s",
                    safe_video_id,
                    strategy_id.value,
                    exc,
                )
                continue
            finally:
                self._artifacts.discard_staging_dir(staging)

            logger.info(
                "acquisition.completed video_id=%s strategy=%s format=%s size=%s",
                safe_video_id,
                strategy_id.value,
                info.format.value,
                info.size,
            )
            return AcquiredArtifact(
                path=info.path,
                format=info.format,
                size=info.size,
                quality=staged.quality,
                strategy=strategy_id,
            )

        raise AcquisitionError("; ".join(failures) or "no runnable strategy")
