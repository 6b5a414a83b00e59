"""Artifact reclamation: post-serve grace window, leases and the age sweep."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
import tempfile
import time
import unittest

from audiograb.repositories.memory import InMemoryStore
from audiograb.schemas.job import AudioFormat, JobStatus, StrategyId
from audiograb.services.artifacts import ArtifactStore
from audiograb.services.metadata import MetadataFetcher
from audiograb.services.reaper import Reaper


class _FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _PurgeSpy(MetadataFetcher):
    def __init__(self) -> None:
        super().__init__(ttl_seconds=60)
        self.purges = 0

    def purge_expired(self) -> int:
        self.purges += 1
        return super().purge_expired()


class _ReaperCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.artifacts = ArtifactStore(Path(self._tmp.name))
        self.store = InMemoryStore()
        self.clock = _FakeClock()
        self.wall_clock = _FakeClock(start=time.time())
        self.reaper = Reaper(
            artifacts=self.artifacts,
            store=self.store,
            grace_seconds=300,
            max_age_seconds=1800,
            interval_seconds=30,
            clock=self.clock,
            wall_clock=self.wall_clock,
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _ready_artifact(self, video_id: str = "abc123XYZ_") -> Path:
        path = self.artifacts.canonical_path(video_id, AudioFormat.MP3)
        path.write_bytes(b"ID3" + b"\x00" * 64)
        job = self.store.create_job(job_id=video_id, url="https://example.com/v", chain=[StrategyId.NATIVE_TRANSCODE])
        self.store.transition_job_status(job=job, new_status=JobStatus.RUNNING)
        self.store.mark_ready(
            job=job,
            artifact_path=path,
            audio_format=AudioFormat.MP3,
            quality="192kbps MP3 (Fast)",
            strategy=StrategyId.NATIVE_TRANSCODE,
        )
        return path


class ServeDeadlineTests(_ReaperCase):
    def test_first_serve_sets_deadline_and_later_serves_do_not_extend_it(self) -> None:
        path = self._ready_artifact()

        self.assertEqual(self.reaper.schedule_after_serve("abc123XYZ_"), 300)
        self.clock.advance(200)
        self.assertEqual(self.reaper.schedule_after_serve("abc123XYZ_"), 300)

        self.clock.advance(99)
        self.assertEqual(self.reaper.reap_due(), [])
        self.assertTrue(path.exists())

        self.clock.advance(1)
        self.assertEqual(self.reaper.reap_due(), ["abc123XYZ_"])
        self.assertFalse(path.exists())
        self.assertIs(self.store.get_job("abc123XYZ_").status, JobStatus.EXPIRED)
        self.assertIsNone(self.reaper.deadline_for("abc123XYZ_"))

    def test_active_lease_defers_deletion_until_released(self) -> None:
        path = self._ready_artifact()
        self.reaper.schedule_after_serve("abc123XYZ_")
        self.reaper.acquire_lease("abc123XYZ_")

        self.clock.advance(301)
        self.assertEqual(self.reaper.reap_due(), [])
        self.assertTrue(path.exists())

        self.reaper.release_lease("abc123XYZ_")
        self.assertEqual(self.reaper.active_leases("abc123XYZ_"), 0)
        self.assertEqual(self.reaper.reap_due(), ["abc123XYZ_"])
        self.assertFalse(path.exists())

    def test_forget_drops_pending_deadline(self) -> None:
        path = self._ready_artifact()
        self.reaper.schedule_after_serve("abc123XYZ_")
        self.reaper.forget("abc123XYZ_")

        self.clock.advance(1000)
        self.assertEqual(self.reaper.reap_due(), [])
        self.assertTrue(path.exists())

    async def test_in_flight_run_keeps_its_output(self) -> None:
        path = self._ready_artifact()
        self.reaper.schedule_after_serve("abc123XYZ_")
        release = asyncio.Event()
        task = asyncio.create_task(release.wait())
        self.store.track_task("abc123XYZ_", task)

        self.clock.advance(301)
        self.reaper.reap_due()
        self.assertTrue(path.exists())

        release.set()
        await task


class AgeSweepTests(_ReaperCase):
    def test_freshly_published_artifact_with_old_tool_mtime_survives_sweep(self) -> None:
        staging = self.artifacts.create_staging_dir("abc")
        staged = staging / "abc.mp3"
        staged.write_bytes(b"ID3" + b"\x00" * 64)
        upload_date = self.wall_clock.now - 365 * 24 * 3600
        os.utime(staged, (upload_date, upload_date))

        self.artifacts.publish("abc", staged)

        self.assertEqual(self.reaper.sweep_stale(), [])
        self.assertTrue(self.artifacts.canonical_path("abc", AudioFormat.MP3).exists())

    def test_unserved_artifact_older_than_max_age_is_swept(self) -> None:
        path = self._ready_artifact()
        fresh = self.artifacts.canonical_path("fresh", AudioFormat.M4A)
        fresh.write_bytes(b"\x00" * 16)
        old = self.wall_clock.now - 3600
        os.utime(path, (old, old))

        self.assertEqual(self.reaper.sweep_stale(), ["abc123XYZ_"])
        self.assertFalse(path.exists())
        self.assertTrue(fresh.exists())
        self.assertIs(self.store.get_job("abc123XYZ_").status, JobStatus.EXPIRED)

    def test_abandoned_staging_directories_are_removed(self) -> None:
        staging = self.artifacts.create_staging_dir("abc123XYZ_")
        (staging / "abc123XYZ_.webm.part").write_bytes(b"partial")
        old = self.wall_clock.now - 3600
        os.utime(staging, (old, old))

        self.reaper.sweep_stale()
        self.assertFalse(staging.exists())

    def test_tick_purges_metadata_cache(self) -> None:
        spy = _PurgeSpy()
        reaper = Reaper(
            artifacts=self.artifacts,
            store=self.store,
            grace_seconds=300,
            max_age_seconds=1800,
            interval_seconds=30,
            metadata=spy,
            clock=self.clock,
            wall_clock=self.wall_clock,
        )
        reaper.tick()
        self.assertEqual(spy.purges, 1)


class BackgroundLoopTests(_ReaperCase):
    async def test_loop_reaps_due_artifacts_until_stopped(self) -> None:
        reaper = Reaper(
            artifacts=self.artifacts,
            store=self.store,
            grace_seconds=0,
            max_age_seconds=1800,
            interval_seconds=0.01,
        )
        path = self._ready_artifact()
        reaper.schedule_after_serve("abc123XYZ_")

        reaper.start()
        for _ in range(100):
            if not path.exists():
                break
            await asyncio.sleep(0.01)
        await reaper.stop()

        self.assertFalse(path.exists())


if __name__ == "__main__":
    unittest.main()
