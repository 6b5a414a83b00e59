"""Canonical artifact storage under the shared temp directory.

Layout::

    {temp_dir}/{id}.{ext}               published artifact, at most one per id
    {temp_dir}/.staging/{id}-{token}/   private scratch space of one run

An artifact becomes visible only through :meth:`ArtifactStore.publish`, which
moves a fully written staging file into place with ``os.replace``. Readers can
therefore treat the existence of ``{id}.{ext}`` as "complete".
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shutil
import time
from uuid import uuid4

from audiograb.core.logging_safety import safe_log_identifier
from audiograb.schemas.job import AudioFormat

logger = logging.getLogger(__name__)

# Probe order when more than one extension could exist.
KNOWN_FORMATS: tuple[AudioFormat, ...] = (
    AudioFormat.MP3,
    AudioFormat.M4A,
    AudioFormat.WEBM,
    AudioFormat.OPUS,
    AudioFormat.AAC,
    AudioFormat.WAV,
)

_CONTENT_TYPES: dict[AudioFormat, str] = {
    AudioFormat.MP3: "audio/mpeg",
    AudioFormat.M4A: "audio/mp4",
    AudioFormat.WEBM: "audio/webm",
    AudioFormat.OPUS: "audio/opus",
    AudioFormat.AAC: "audio/aac",
    AudioFormat.WAV: "audio/wav",
}

_STAGING_DIRNAME = ".staging"


class ArtifactError(Exception):
    """Raised when a staged file cannot become an artifact."""


@dataclass(frozen=True, slots=True)
class ArtifactInfo:
    video_id: str
    path: Path
    format: AudioFormat
    size: int
    modified_at: float

    @property
    def content_type(self) -> str:
        return content_type_for(self.format)

    @property
    def download_name(self) -> str:
        return f"youtube-{self.video_id}.{self.format.value}"


def content_type_for(audio_format: AudioFormat) -> str:
    return _CONTENT_TYPES.get(audio_format, "audio/mpeg")


def format_from_suffix(path: Path) -> AudioFormat | None:
    suffix = path.suffix.lower().lstrip(".")
    try:
        return AudioFormat(suffix)
    except ValueError:
        return None


class ArtifactStore:
    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._staging_root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def _staging_root(self) -> Path:
        return self._root / _STAGING_DIRNAME

    def canonical_path(self, video_id: str, audio_format: AudioFormat) -> Path:
        return self._root / f"{video_id}.{audio_format.value}"

    def find(self, video_id: str) -> ArtifactInfo | None:
        """Return the published artifact for ``video_id`` if one exists."""
        for audio_format in KNOWN_FORMATS:
            path = self.canonical_path(video_id, audio_format)
            try:
                stat = path.stat()
            except FileNotFoundError:
                continue
            return ArtifactInfo(
                video_id=video_id,
                path=path,
                format=audio_format,
                size=stat.st_size,
                modified_at=stat.st_mtime,
            )
        return None

    def create_staging_dir(self, video_id: str) -> Path:
        staging = self._staging_root / f"{video_id}-{uuid4().hex[:8]}"
        staging.mkdir(parents=True)
        return staging

    def discard_staging_dir(self, staging: Path) -> None:
        shutil.rmtree(staging, ignore_errors=True)

    def publish(self, video_id: str, staged: Path) -> ArtifactInfo:
        """Atomically move ``staged`` to its canonical name.

        Zero-byte files and extensions outside :data:`KNOWN_FORMATS` are
        rejected. Artifacts with another extension for the same id are
        removed first so only one file per id remains.
        """
        audio_format = format_from_suffix(staged)
        if audio_format is None:
            raise ArtifactError(f"unsupported output extension {staged.suffix or '<none>'}")
        size = staged.stat().st_size
        if size == 0:
            raise ArtifactError("tool produced an empty file")

        target = self.canonical_path(video_id, audio_format)
        for other in KNOWN_FORMATS:
            if other is not audio_format:
                self.canonical_path(video_id, other).unlink(missing_ok=True)
        os.replace(staged, target)
        # Age sweeps key off mtime; tools may stamp the upload date instead.
        os.utime(target)
        logger.info(
            "artifact.published video_id=%s format=%s size=%s",
            safe_log_identifier(video_id, prefix="vid"),
            audio_format.value,
            size,
        )
        info = self.find(video_id)
        if info is None:
            raise ArtifactError("artifact vanished right after publication")
        return info

    def remove(self, video_id: str) -> bool:
        removed = False
        for audio_format in KNOWN_FORMATS:
            path = self.canonical_path(video_id, audio_format)
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            removed = True
        if removed:
            logger.info("artifact.removed video_id=%s", safe_log_identifier(video_id, prefix="vid"))
        return removed

    def list_artifacts(self) -> list[ArtifactInfo]:
        artifacts: list[ArtifactInfo] = []
        for entry in self._root.iterdir():
            if not entry.is_file():
                continue
            audio_format = format_from_suffix(entry)
            if audio_format is None:
                continue
            info = self.find(entry.stem)
            if info is not None and info.path == entry:
                artifacts.append(info)
        return artifacts

    def sweep_staging(self, *, max_age_seconds: float, now: float | None = None) -> int:
        """Remove staging directories abandoned by crashed runs."""
        current = time.time() if now is None else now
        removed = 0
        for entry in self._staging_root.iterdir():
            try:
                age = current - entry.stat().st_mtime
            except FileNotFoundError:
                continue
            if age > max_age_seconds:
                shutil.rmtree(entry, ignore_errors=True)
                removed += 1
        return removed
