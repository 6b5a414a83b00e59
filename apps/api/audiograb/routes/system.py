"""Diagnostic routes."""

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response

from audiograb.adapters.capabilities import CapabilityProber, recommendations
from audiograb.adapters.placeholder import frequency_for, render_tone
from audiograb.domain.strategy import Capabilities, select_strategy
from audiograb.routes.dependencies import get_prober
from audiograb.schemas.system import HealthResponse, SystemCheckResponse, ToolChecks

router = APIRouter(tags=["System"])


@router.get("/system-check", response_model=SystemCheckResponse)
async def system_check(prober: Annotated[CapabilityProber, Depends(get_prober)]) -> SystemCheckResponse:
    checks, versions = await prober.full_report()
    capabilities = Capabilities(has_downloader=checks["yt_dlp"], has_transcoder=checks["ffmpeg"])
    return SystemCheckResponse(
        status="success",
        checks=ToolChecks(**checks),
        versions=versions,
        recommendations=recommendations(checks),
        strategy=select_strategy(capabilities).value,
    )


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@router.get(
    "/sample-audio",
    response_class=Response,
    responses={200: {"description": "Demo tone", "content": {"audio/wav": {}}}},
)
async def sample_audio(
    video_id: Annotated[str, Query(alias="videoId", pattern=r"^[A-Za-z0-9_-]{1,64}$")] = "demo",
) -> Response:
    body = await asyncio.to_thread(render_tone, frequency=frequency_for(video_id), seconds=10, sample_rate=44100)
    return Response(
        content=body,
        media_type="audio/wav",
        headers={"Content-Disposition": f'attachment; filename="demo-audio-{video_id}.wav"'},
    )
