"""Artifact download routes."""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import FileResponse
from starlette.types import Receive, Scope, Send

from audiograb.core.logging_safety import safe_log_identifier
from audiograb.routes.dependencies import get_job_service, get_reaper
from audiograb.schemas.error import NoLeakNotFoundError
from audiograb.schemas.job import AudioFormat
from audiograb.services.jobs import JobService
from audiograb.services.reaper import Reaper

router = APIRouter(tags=["Download"])
logger = logging.getLogger(__name__)


class LeasedFileResponse(FileResponse):
    """File response that runs ``on_close`` once the transfer ends, however it ends."""

    def __init__(self, *args, on_close: Callable[[], None], **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self._on_close()


@router.get(
    "/download/{videoId}",
    response_class=FileResponse,
    responses={
        200: {"description": "Audio file", "content": {"audio/mpeg": {}}},
        404: {"model": NoLeakNotFoundError},
    },
)
async def download(
    video_id: Annotated[str, Path(alias="videoId")],
    service: Annotated[JobService, Depends(get_job_service)],
    reaper: Annotated[Reaper, Depends(get_reaper)],
    requested_format: Annotated[AudioFormat | None, Query(alias="format")] = None,
) -> FileResponse:
    artifact = service.artifact_for_download(video_id)
    if requested_format is not None and requested_format is not artifact.format:
        # Only one artifact exists per id; serve it under its real type.
        logger.info(
            "download.format_mismatch video_id=%s requested=%s actual=%s",
            safe_log_identifier(video_id, prefix="vid"),
            requested_format.value,
            artifact.format.value,
        )

    reaper.schedule_after_serve(video_id)
    reaper.acquire_lease(video_id)
    logger.info(
        "download.serving video_id=%s format=%s size=%s",
        safe_log_identifier(video_id, prefix="vid"),
        artifact.format.value,
        artifact.size,
    )
    return LeasedFileResponse(
        artifact.path,
        media_type=artifact.content_type,
        filename=artifact.download_name,
        headers={"Cache-Control": "no-cache"},
        on_close=lambda: reaper.release_lease(video_id),
    )
