"""Display metadata resolution with a short-lived cache."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import time
from collections.abc import Callable, Sequence

from audiograb.adapters.metadata import MetadataSource, MetadataSourceError
from audiograb.core.logging_safety import safe_log_identifier
from audiograb.schemas.job import VideoInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BoundedSource:
    """A metadata source paired with the hard time limit applied to it."""

    source: MetadataSource
    timeout: float


@dataclass(slots=True)
class _CacheEntry:
    info: VideoInfo
    expires_at: float


class MetadataFetcher:
    """Tries each bounded source in order and caches the first answer.

    Failures are not cached, so a transient outage does not pin a missing
    title for the whole TTL.
    """

    def __init__(self, *, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}

    async def get_info(self, url: str, video_id: str, sources: Sequence[BoundedSource]) -> VideoInfo | None:
        cached = self.cached(video_id)
        if cached is not None:
            logger.debug("metadata.cache_hit video_id=%s", safe_log_identifier(video_id, prefix="vid"))
            return cached

        safe_video_id = safe_log_identifier(video_id, prefix="vid")
        for bounded in sources:
            try:
                info = await asyncio.wait_for(bounded.source.fetch(url, video_id), timeout=bounded.timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "metadata.source_timeout video_id=%s source=%s timeout=%s",
                    safe_video_id,
                    bounded.source.name,
                    bounded.timeout,
                )
                continue
            except MetadataSourceError as exc:
                logger.warning(
                    "metadata.source_failed video_id=%s source=%s reason=%s",
                    safe_video_id,
                    bounded.source.name,
                    exc,
                )
                continue

            self._cache[video_id] = _CacheEntry(info=info, expires_at=self._clock() + self._ttl_seconds)
            logger.info("metadata.resolved video_id=%s source=%s", safe_video_id, bounded.source.name)
            return info

        logger.warning("metadata.unavailable video_id=%s", safe_video_id)
        return None

    def cached(self, video_id: str) -> VideoInfo | None:
        entry = self._cache.get(video_id)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._cache.pop(video_id, None)
            return None
        return entry.info

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._cache.items() if entry.expires_at <= now]
        for key in expired:
            del self._cache[key]
        return len(expired)
