"""Video metadata source interfaces."""

from abc import ABC, abstractmethod

from audiograb.schemas.job import VideoInfo

DEFAULT_DURATION_SECONDS = 180


class MetadataSourceError(Exception):
    """Raised when a source cannot resolve metadata in time."""


class MetadataSource(ABC):
    """Provider-neutral metadata lookup interface."""

    name: str = "source"

    @abstractmethod
    async def fetch(self, url: str, video_id: str) -> VideoInfo:
        """Resolve display metadata or raise :class:`MetadataSourceError`."""


def fallback_thumbnail(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"


__all__ = [
    "DEFAULT_DURATION_SECONDS",
    "MetadataSource",
    "MetadataSourceError",
    "fallback_thumbnail",
]
