"""Deterministic reclamation of artifact storage.

Two independent triggers delete artifacts:

* a post-serve deadline, set the first time an artifact is served and never
  extended by later serves;
* an age sweep that removes artifacts nobody downloaded.

A deletion that falls due while a transfer is still streaming the file is
deferred until the last lease on that identifier is released.
"""

from __future__ import annotations

import asyncio
from collections import Counter
import logging
import time
from collections.abc import Callable

from audiograb.core.logging_safety import safe_log_identifier
from audiograb.repositories.memory import InMemoryStore
from audiograb.services.artifacts import ArtifactStore
from audiograb.services.metadata import MetadataFetcher

logger = logging.getLogger(__name__)


class Reaper:
    def __init__(
        self,
        *,
        artifacts: ArtifactStore,
        store: InMemoryStore,
        grace_seconds: float,
        max_age_seconds: float,
        interval_seconds: float,
        metadata: MetadataFetcher | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._artifacts = artifacts
        self._store = store
        self._grace_seconds = grace_seconds
        self._max_age_seconds = max_age_seconds
        self._interval_seconds = interval_seconds
        self._metadata = metadata
        self._clock = clock
        self._wall_clock = wall_clock
        self._deadlines: dict[str, float] = {}
        self._leases: Counter[str] = Counter()
        self._loop_task: asyncio.Task | None = None

    def schedule_after_serve(self, video_id: str) -> float:
        """Record the deletion deadline for a served artifact; the first serve wins."""
        deadline = self._deadlines.get(video_id)
        if deadline is None:
            deadline = self._clock() + self._grace_seconds
            self._deadlines[video_id] = deadline
            logger.info(
                "reaper.scheduled video_id=%s delay_seconds=%s",
                safe_log_identifier(video_id, prefix="vid"),
                self._grace_seconds,
            )
        return deadline

    def deadline_for(self, video_id: str) -> float | None:
        return self._deadlines.get(video_id)

    def forget(self, video_id: str) -> None:
        """Drop a pending deadline, used when a fresh run replaces the artifact."""
        self._deadlines.pop(video_id, None)

    def acquire_lease(self, video_id: str) -> None:
        self._leases[video_id] += 1

    def release_lease(self, video_id: str) -> None:
        self._leases[video_id] -= 1
        if self._leases[video_id] <= 0:
            del self._leases[video_id]

    def active_leases(self, video_id: str) -> int:
        return self._leases.get(video_id, 0)

    def reap_due(self) -> list[str]:
        """Delete every served artifact whose grace period has elapsed."""
        now = self._clock()
        reaped: list[str] = []
        for video_id, deadline in list(self._deadlines.items()):
            if deadline > now:
                continue
            if self.active_leases(video_id):
                logger.info(
                    "reaper.deferred video_id=%s leases=%s",
                    safe_log_identifier(video_id, prefix="vid"),
                    self.active_leases(video_id),
                )
                continue
            del self._deadlines[video_id]
            self._reclaim(video_id)
            reaped.append(video_id)
        return reaped

    def sweep_stale(self) -> list[str]:
        """Delete artifacts older than the max age, served or not."""
        now = self._wall_clock()
        swept: list[str] = []
        for info in self._artifacts.list_artifacts():
            if now - info.modified_at <= self._max_age_seconds:
                continue
            if self.active_leases(info.video_id):
                continue
            self._deadlines.pop(info.video_id, None)
            self._reclaim(info.video_id)
            swept.append(info.video_id)
        self._artifacts.sweep_staging(max_age_seconds=self._max_age_seconds, now=now)
        return swept

    def tick(self) -> None:
        self.reap_due()
        self.sweep_stale()
        if self._metadata is not None:
            self._metadata.purge_expired()

    def _reclaim(self, video_id: str) -> None:
        if self._store.get_task(video_id) is not None:
            # A fresh run owns this id now; its output must survive.
            return
        self._artifacts.remove(video_id)
        self._store.expire(video_id)

    async def run_forever(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            try:
                self.tick()
            except OSError:
                logger.exception("reaper.tick_failed")

    def start(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.get_running_loop().create_task(self.run_forever())

    async def stop(self) -> None:
        if self._loop_task is None:
            return
        self._loop_task.cancel()
        try:
            await self._loop_task
        except asyncio.CancelledError:
            pass
        self._loop_task = None
