"""Conversion job service layer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging

from audiograb.adapters.capabilities import CapabilityProber
from audiograb.core.logging_safety import format_size_mb, safe_log_identifier
from audiograb.domain.identifiers import extract_video_id, is_valid_identifier, is_valid_source_url
from audiograb.domain.job_fsm import is_in_flight
from audiograb.domain.strategy import Capabilities, expected_output, strategy_chain
from audiograb.errors import ApiError, not_found
from audiograb.repositories.memory import InMemoryStore, JobRecord
from audiograb.schemas.job import (
    ConvertRequest,
    ConvertResponse,
    Job,
    JobStatus,
    ProgressResponse,
    StrategyId,
    VideoInfo,
)
from audiograb.services.acquisition import AcquisitionError, AcquisitionRunner
from audiograb.services.artifacts import ArtifactInfo, ArtifactStore
from audiograb.services.metadata import BoundedSource, MetadataFetcher
from audiograb.services.reaper import Reaper

logger = logging.getLogger(__name__)

_PENDING_FILE_SIZE = "Calculating..."


@dataclass(frozen=True, slots=True)
class MetadataSources:
    """Rich source (needs yt-dlp) and the lightweight public fallback."""

    rich: BoundedSource | None
    light: BoundedSource | None

    def for_capabilities(self, capabilities: Capabilities) -> list[BoundedSource]:
        sources: list[BoundedSource] = []
        if self.rich is not None and capabilities.has_downloader:
            sources.append(self.rich)
        if self.light is not None:
            sources.append(self.light)
        return sources


class JobService:
    def __init__(
        self,
        *,
        store: InMemoryStore,
        artifacts: ArtifactStore,
        prober: CapabilityProber,
        metadata: MetadataFetcher,
        metadata_sources: MetadataSources,
        runner: AcquisitionRunner,
        reaper: Reaper,
        placeholder_enabled: bool = True,
        api_prefix: str = "/api",
    ) -> None:
        self._store = store
        self._artifacts = artifacts
        self._prober = prober
        self._metadata = metadata
        self._metadata_sources = metadata_sources
        self._runner = runner
        self._reaper = reaper
        self._placeholder_enabled = placeholder_enabled
        self._api_prefix = api_prefix

    async def submit(self, payload: ConvertRequest) -> ConvertResponse:
        """Accept a conversion request and return before any audio exists."""
        video_id, url = self._validate(payload)
        safe_video_id = safe_log_identifier(video_id, prefix="vid")

        attached = self._attach_or_reuse(video_id)
        if attached is not None:
            return attached

        capabilities = await self._prober.capabilities()
        chain = strategy_chain(capabilities, include_placeholder=self._placeholder_enabled)
        info = await self._metadata.get_info(url, video_id, self._metadata_sources.for_capabilities(capabilities))
        if info is None:
            raise ApiError(
                status_code=400,
                code="METADATA_UNAVAILABLE",
                message="Could not retrieve video information.",
            )

        # Another request may have dispatched this id while we awaited.
        attached = self._attach_or_reuse(video_id, info=info)
        if attached is not None:
            return attached

        job = self._store.create_job(job_id=video_id, url=url, chain=chain, info=info)
        self._reaper.forget(video_id)
        task = asyncio.get_running_loop().create_task(self._execute(job), name=f"acquire-{video_id}")
        self._store.track_task(video_id, task)
        logger.info(
            "job.dispatched job_id=%s url=%s strategy=%s chain=%s",
            safe_video_id,
            safe_log_identifier(url, prefix="url"),
            job.strategy.value,
            ",".join(strategy.value for strategy in chain),
        )
        return self._processing_response(job, info)

    def progress(self, video_id: str) -> ProgressResponse:
        if not is_valid_identifier(video_id):
            return ProgressResponse(exists=False, ready=False, status="not_found")

        job = self._store.get_job(video_id)
        if job is not None and is_in_flight(job.status):
            return ProgressResponse(exists=False, ready=False, status="processing")
        if job is not None and job.status is JobStatus.FAILED:
            return ProgressResponse(exists=False, ready=False, status="failed", error=job.failure_reason)
        if job is not None and job.status is JobStatus.EXPIRED:
            return ProgressResponse(exists=False, ready=False, status="expired")

        artifact = self._artifacts.find(video_id)
        if artifact is not None:
            return self._ready_progress(artifact)
        if job is not None:
            # READY on record but the file is gone.
            self._store.expire(video_id)
            return ProgressResponse(exists=False, ready=False, status="expired")
        return ProgressResponse(exists=False, ready=False, status="not_found")

    def get_job(self, video_id: str) -> Job:
        record = self._store.get_job(video_id)
        if record is None:
            raise not_found()
        return self._to_job(record)

    def artifact_for_download(self, video_id: str) -> ArtifactInfo:
        if not is_valid_identifier(video_id):
            raise not_found()
        artifact = self._artifacts.find(video_id)
        if artifact is None:
            raise not_found()
        return artifact

    async def _execute(self, job: JobRecord) -> None:
        safe_job_id = safe_log_identifier(job.id, prefix="jid")
        self._store.transition_job_status(job=job, new_status=JobStatus.RUNNING)
        try:
            result = await self._runner.run(job.url, job.id, job.chain, on_attempt=job.attempts.append)
        except AcquisitionError as exc:
            self._store.mark_failed(job=job, reason=str(exc))
            logger.warning("job.failed job_id=%s attempts=%s reason=%s", safe_job_id, len(job.attempts), exc)
            return
        except asyncio.CancelledError:
            self._store.mark_failed(job=job, reason="cancelled")
            logger.warning("job.cancelled job_id=%s", safe_job_id)
            raise
        except Exception as exc:  # background task boundary, nothing awaits this task
            self._store.mark_failed(job=job, reason=f"unexpected error: {type(exc).__name__}")
            logger.exception("job.crashed job_id=%s", safe_job_id)
            return

        self._store.mark_ready(
            job=job,
            artifact_path=result.path,
            audio_format=result.format,
            quality=result.quality,
            strategy=result.strategy,
        )
        logger.info(
            "job.ready job_id=%s strategy=%s format=%s size_mb=%s",
            safe_job_id,
            result.strategy.value,
            result.format.value,
            format_size_mb(result.size),
        )

    def _attach_or_reuse(self, video_id: str, *, info: VideoInfo | None = None) -> ConvertResponse | None:
        job = self._store.get_job(video_id)
        if job is not None and is_in_flight(job.status) and self._store.get_task(video_id) is not None:
            logger.info("job.attached job_id=%s status=%s", safe_log_identifier(video_id, prefix="jid"), job.status)
            return self._processing_response(job, job.info or info)

        if job is not None and job.status is not JobStatus.READY:
            return None
        artifact = self._artifacts.find(video_id)
        if artifact is None:
            return None
        known_info = (job.info if job is not None else None) or info
        if known_info is None:
            return None
        logger.info("job.reused job_id=%s", safe_log_identifier(video_id, prefix="jid"))
        return ConvertResponse(
            id=video_id,
            title=known_info.title,
            thumbnail=known_info.thumbnail,
            duration=known_info.duration,
            file_size=f"{format_size_mb(artifact.size)}MB",
            download_url=self._download_url(video_id),
            quality=(job.quality if job is not None and job.quality else "Original"),
            format=artifact.format,
            is_demo=job is not None and job.strategy is StrategyId.PLACEHOLDER,
            status="ready",
        )

    def _processing_response(self, job: JobRecord, info: VideoInfo | None) -> ConvertResponse:
        audio_format, quality = expected_output(job.strategy)
        return ConvertResponse(
            id=job.id,
            title=info.title if info is not None else "Unknown Title",
            thumbnail=info.thumbnail if info is not None else "",
            duration=info.duration if info is not None else 0,
            file_size=_PENDING_FILE_SIZE,
            download_url=self._download_url(job.id),
            quality=quality,
            format=audio_format,
            is_demo=job.strategy is StrategyId.PLACEHOLDER,
            status="processing",
        )

    def _download_url(self, video_id: str) -> str:
        return f"{self._api_prefix}/download/{video_id}"

    @staticmethod
    def _ready_progress(artifact: ArtifactInfo) -> ProgressResponse:
        return ProgressResponse(
            exists=True,
            ready=True,
            size=artifact.size,
            size_in_mb=format_size_mb(artifact.size),
            format=artifact.format,
            status="ready",
        )

    @staticmethod
    def _validate(payload: ConvertRequest) -> tuple[str, str]:
        url = payload.url.strip()
        if not is_valid_source_url(url):
            raise ApiError(
                status_code=400,
                code="VALIDATION_ERROR",
                message="url must be an absolute http(s) URL",
                details={"field": "url"},
            )
        video_id = (payload.video_id or "").strip() or extract_video_id(url)
        if not video_id or not is_valid_identifier(video_id):
            raise ApiError(
                status_code=400,
                code="VALIDATION_ERROR",
                message="videoId must be 1-64 characters of letters, digits, '-' or '_'",
                details={"field": "videoId"},
            )
        return video_id, url

    @staticmethod
    def _to_job(record: JobRecord) -> Job:
        return Job(
            id=record.id,
            url=record.url,
            status=record.status,
            strategy=record.strategy,
            format=record.format,
            failure_reason=record.failure_reason,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
