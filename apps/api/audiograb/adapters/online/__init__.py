"""Online conversion service adapters."""

from .base import OnlineService, OnlineServiceError
from .cobalt import CobaltService

__all__ = ["CobaltService", "OnlineService", "OnlineServiceError"]
