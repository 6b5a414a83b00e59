"""Third-party online conversion service interfaces."""

from abc import ABC, abstractmethod
from pathlib import Path


class OnlineServiceError(Exception):
    """Raised when an online service cannot deliver audio."""


class OnlineService(ABC):
    """A remote endpoint that turns a video URL into downloadable audio."""

    name: str = "online"

    @abstractmethod
    async def download(self, url: str, destination: Path) -> Path:
        """Write the audio for ``url`` to ``destination`` and return its path."""


__all__ = ["OnlineService", "OnlineServiceError"]
