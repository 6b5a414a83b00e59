"""Readiness polling routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from audiograb.routes.dependencies import get_job_service
from audiograb.schemas.job import ProgressResponse
from audiograb.services.jobs import JobService

router = APIRouter(tags=["Conversion"])


@router.get(
    "/progress/{videoId}",
    response_model=ProgressResponse,
    response_model_exclude_none=True,
)
async def get_progress(
    video_id: Annotated[str, Path(alias="videoId")],
    service: Annotated[JobService, Depends(get_job_service)],
) -> ProgressResponse:
    return service.progress(video_id)
