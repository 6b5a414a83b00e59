"""Artifact publication and lookup on the shared temp directory."""

from __future__ import annotations

import os
from pathlib import Path
import tempfile
import time
import unittest

from audiograb.schemas.job import AudioFormat
from audiograb.services.artifacts import ArtifactError, ArtifactStore, content_type_for


class ArtifactStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.store = ArtifactStore(self.root)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _stage(self, name: str, payload: bytes) -> Path:
        staging = self.store.create_staging_dir("abc")
        path = staging / name
        path.write_bytes(payload)
        return path

    def test_find_returns_none_for_unknown_identifier(self) -> None:
        self.assertIsNone(self.store.find("never-submitted"))

    def test_publish_moves_file_to_canonical_name(self) -> None:
        staged = self._stage("abc.m4a", b"audio-bytes")

        info = self.store.publish("abc", staged)

        self.assertFalse(staged.exists())
        self.assertEqual(info.path, self.root / "abc.m4a")
        self.assertEqual(info.format, AudioFormat.M4A)
        self.assertEqual(info.size, len(b"audio-bytes"))
        self.assertEqual(info.content_type, "audio/mp4")
        self.assertEqual(info.download_name, "youtube-abc.m4a")
        self.assertEqual(self.store.find("abc"), info)

    def test_publish_keeps_a_single_artifact_per_identifier(self) -> None:
        self.store.publish("abc", self._stage("abc.m4a", b"old"))
        self.store.publish("abc", self._stage("abc.mp3", b"new-bytes"))

        files = sorted(entry.name for entry in self.root.iterdir() if entry.is_file())
        self.assertEqual(files, ["abc.mp3"])
        self.assertEqual(self.store.find("abc").size, len(b"new-bytes"))

    def test_publish_stamps_current_time_on_the_artifact(self) -> None:
        staged = self._stage("abc.mp3", b"audio-bytes")
        os.utime(staged, (0, 0))
        before = time.time() - 5

        info = self.store.publish("abc", staged)

        self.assertGreaterEqual(info.modified_at, before)

    def test_publish_rejects_empty_and_unknown_outputs(self) -> None:
        with self.assertRaises(ArtifactError):
            self.store.publish("abc", self._stage("abc.mp3", b""))
        with self.assertRaises(ArtifactError):
            self.store.publish("abc", self._stage("abc.mp4", b"video"))
        self.assertIsNone(self.store.find("abc"))

    def test_remove_and_list(self) -> None:
        self.store.publish("abc", self._stage("abc.wav", b"RIFF"))
        self.store.publish("def", self._stage("def.opus", b"Opus"))

        self.assertEqual(sorted(info.video_id for info in self.store.list_artifacts()), ["abc", "def"])
        self.assertTrue(self.store.remove("abc"))
        self.assertFalse(self.store.remove("abc"))
        self.assertEqual([info.video_id for info in self.store.list_artifacts()], ["def"])

    def test_sweep_staging_removes_only_old_directories(self) -> None:
        old = self.store.create_staging_dir("old")
        fresh = self.store.create_staging_dir("fresh")
        past = time.time() - 3600
        os.utime(old, (past, past))

        removed = self.store.sweep_staging(max_age_seconds=600)

        self.assertEqual(removed, 1)
        self.assertFalse(old.exists())
        self.assertTrue(fresh.exists())

    def test_content_types(self) -> None:
        self.assertEqual(content_type_for(AudioFormat.MP3), "audio/mpeg")
        self.assertEqual(content_type_for(AudioFormat.WAV), "audio/wav")
        self.assertEqual(content_type_for(AudioFormat.WEBM), "audio/webm")


if __name__ == "__main__":
    unittest.main()
