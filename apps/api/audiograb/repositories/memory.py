"""In-memory job table keyed by request identifier."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from audiograb.domain.job_fsm import ensure_transition
from audiograb.schemas.job import AudioFormat, JobStatus, StrategyId, VideoInfo

_TRANSITION_AUDIT_EVENT_TYPE = "JOB_STATUS_TRANSITION_APPLIED"

ActorType = Literal["runner", "reaper"]


@dataclass(slots=True)
class JobRecord:
    id: str
    url: str
    strategy: StrategyId
    chain: list[StrategyId]
    status: JobStatus
    created_at: datetime
    info: VideoInfo | None = None
    updated_at: datetime | None = None
    artifact_path: Path | None = None
    format: AudioFormat | None = None
    quality: str | None = None
    failure_reason: str | None = None
    attempts: list[StrategyId] = field(default_factory=list)


@dataclass(slots=True)
class TransitionAuditRecord:
    event_type: str
    job_id: str
    actor_type: ActorType
    prev_status: JobStatus
    new_status: JobStatus
    occurred_at: datetime


@dataclass(slots=True)
class InMemoryStore:
    """Process-local job table.

    Jobs are never persisted; the artifact file is the only durable trace of a
    finished job. ``tasks`` holds the background run for every in-flight job so
    a second submission for the same identifier can attach instead of racing.
    """

    jobs: dict[str, JobRecord] = field(default_factory=dict)
    tasks: dict[str, asyncio.Task] = field(default_factory=dict)
    transition_audit_events: list[TransitionAuditRecord] = field(default_factory=list)
    job_write_count: int = 0

    def create_job(
        self,
        *,
        job_id: str,
        url: str,
        chain: list[StrategyId],
        info: VideoInfo | None = None,
    ) -> JobRecord:
        """Create a PENDING job, replacing any terminal record for the same id."""
        job = JobRecord(
            id=job_id,
            url=url,
            strategy=chain[0],
            chain=list(chain),
            status=JobStatus.PENDING,
            created_at=datetime.now(UTC),
            info=info,
        )
        self.jobs[job_id] = job
        self.job_write_count += 1
        return job

    def get_job(self, job_id: str) -> JobRecord | None:
        return self.jobs.get(job_id)

    def get_task(self, job_id: str) -> asyncio.Task | None:
        task = self.tasks.get(job_id)
        if task is not None and task.done():
            self.tasks.pop(job_id, None)
            return None
        return task

    def track_task(self, job_id: str, task: asyncio.Task) -> None:
        self.tasks[job_id] = task

        def _forget(done: asyncio.Task) -> None:
            if self.tasks.get(job_id) is done:
                self.tasks.pop(job_id, None)

        task.add_done_callback(_forget)

    def transition_job_status(
        self,
        *,
        job: JobRecord,
        new_status: JobStatus,
        actor_type: ActorType = "runner",
    ) -> None:
        """Apply an FSM-validated status mutation with consistent write bookkeeping."""
        ensure_transition(job.status, new_status)
        previous_status = job.status
        occurred_at = datetime.now(UTC)
        job.status = new_status
        job.updated_at = occurred_at
        self.job_write_count += 1
        self.transition_audit_events.append(
            TransitionAuditRecord(
                event_type=_TRANSITION_AUDIT_EVENT_TYPE,
                job_id=job.id,
                actor_type=actor_type,
                prev_status=previous_status,
                new_status=new_status,
                occurred_at=occurred_at,
            )
        )

    def mark_ready(
        self,
        *,
        job: JobRecord,
        artifact_path: Path,
        audio_format: AudioFormat,
        quality: str,
        strategy: StrategyId,
    ) -> None:
        self.transition_job_status(job=job, new_status=JobStatus.READY)
        job.artifact_path = artifact_path
        job.format = audio_format
        job.quality = quality
        job.strategy = strategy

    def mark_failed(self, *, job: JobRecord, reason: str) -> None:
        self.transition_job_status(job=job, new_status=JobStatus.FAILED)
        job.failure_reason = reason

    def expire(self, job_id: str) -> JobRecord | None:
        """Move a READY job to EXPIRED once its artifact has been reclaimed."""
        job = self.jobs.get(job_id)
        if job is None or job.status is not JobStatus.READY:
            return None
        self.transition_job_status(job=job, new_status=JobStatus.EXPIRED, actor_type="reaper")
        return job
