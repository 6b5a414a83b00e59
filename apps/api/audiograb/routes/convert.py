"""Conversion submission routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from audiograb.routes.dependencies import get_job_service
from audiograb.schemas.error import MetadataUnavailableError, NoLeakNotFoundError, ValidationErrorResponse
from audiograb.schemas.job import ConvertRequest, ConvertResponse, Job
from audiograb.services.jobs import JobService

router = APIRouter(tags=["Conversion"])


@router.post(
    "/convert",
    response_model=ConvertResponse,
    responses={400: {"model": ValidationErrorResponse | MetadataUnavailableError}},
)
async def convert(
    payload: ConvertRequest,
    service: Annotated[JobService, Depends(get_job_service)],
) -> ConvertResponse:
    return await service.submit(payload)


@router.get(
    "/jobs/{videoId}",
    response_model=Job,
    responses={404: {"model": NoLeakNotFoundError}},
)
async def get_job(
    video_id: Annotated[str, Path(alias="videoId")],
    service: Annotated[JobService, Depends(get_job_service)],
) -> Job:
    return service.get_job(video_id)
