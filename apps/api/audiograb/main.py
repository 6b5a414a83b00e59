"""FastAPI application entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from audiograb.adapters.capabilities import CapabilityProber
from audiograb.adapters.metadata import OEmbedMetadataSource, YtDlpMetadataSource
from audiograb.adapters.online import CobaltService
from audiograb.core.config import Settings, get_settings
from audiograb.errors import ApiError
from audiograb.repositories.memory import InMemoryStore
from audiograb.routes import convert_router, download_router, progress_router, system_router
from audiograb.schemas.error import ErrorResponse, NoLeakNotFoundError
from audiograb.services.acquisition import (
    AcquisitionRunner,
    DirectAudioStrategy,
    NativeTranscodeStrategy,
    OnlineFallbackStrategy,
    PlaceholderStrategy,
)
from audiograb.services.artifacts import ArtifactStore
from audiograb.services.jobs import MetadataSources
from audiograb.services.metadata import BoundedSource, MetadataFetcher
from audiograb.services.reaper import Reaper

API_PREFIX = "/api"

_CONVERT_VALIDATION_PATHS: set[tuple[str, str]] = {
    ("POST", f"{API_PREFIX}/convert"),
}

_IDENTIFIER_VALIDATION_PATHS: set[tuple[str, str]] = {
    ("GET", f"{API_PREFIX}/download/{{videoId}}"),
    ("GET", f"{API_PREFIX}/jobs/{{videoId}}"),
}


def _configure_state(app: FastAPI, settings: Settings) -> None:
    """Build the long-lived collaborators shared by every request."""
    store = InMemoryStore()
    artifacts = ArtifactStore(settings.temp_dir)
    metadata = MetadataFetcher(ttl_seconds=settings.metadata_cache_ttl_seconds)

    app.state.settings = settings
    app.state.api_prefix = API_PREFIX
    app.state.store = store
    app.state.artifacts = artifacts
    app.state.metadata = metadata
    app.state.prober = CapabilityProber(
        ytdlp_binary=settings.ytdlp_binary,
        ffmpeg_binary=settings.ffmpeg_binary,
        probe_timeout=settings.probe_timeout_seconds,
        cache_seconds=settings.capability_cache_seconds,
    )
    app.state.metadata_sources = MetadataSources(
        rich=BoundedSource(
            source=YtDlpMetadataSource(
                binary=settings.ytdlp_binary,
                timeout=settings.rich_metadata_timeout_seconds,
            ),
            timeout=settings.rich_metadata_timeout_seconds,
        ),
        light=BoundedSource(
            source=OEmbedMetadataSource(
                endpoint=settings.oembed_endpoint,
                timeout=settings.oembed_timeout_seconds,
            ),
            timeout=settings.oembed_timeout_seconds,
        ),
    )
    app.state.runner = AcquisitionRunner(
        artifacts=artifacts,
        strategies=[
            NativeTranscodeStrategy(binary=settings.ytdlp_binary),
            DirectAudioStrategy(binary=settings.ytdlp_binary),
            OnlineFallbackStrategy(
                services=[
                    CobaltService(endpoint=endpoint, timeout=settings.online_service_timeout_seconds)
                    for endpoint in settings.online_services
                ],
                timeout=settings.online_service_timeout_seconds,
            ),
            PlaceholderStrategy(),
        ],
        timeout=settings.acquisition_timeout_seconds,
    )
    app.state.reaper = Reaper(
        artifacts=artifacts,
        store=store,
        grace_seconds=settings.serve_grace_seconds,
        max_age_seconds=settings.max_artifact_age_seconds,
        interval_seconds=settings.reaper_interval_seconds,
        metadata=metadata,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    reaper: Reaper = app.state.reaper
    reaper.start()
    try:
        yield
    finally:
        await reaper.stop()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.getLogger("audiograb").setLevel(settings.log_level.upper())

    app = FastAPI(title="audiograb API", version="1.0.0", lifespan=_lifespan)
    _configure_state(app, settings)

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed submissions are a client error, not an unprocessable entity.
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        route_key = (request.method.upper(), route_path)
        if route_key in _CONVERT_VALIDATION_PATHS:
            fields = [".".join(str(part) for part in error.get("loc", ())[1:]) for error in exc.errors()]
            payload = ErrorResponse(
                code="VALIDATION_ERROR",
                message="Invalid conversion request",
                details={"fields": fields},
            )
            return JSONResponse(status_code=400, content=payload.model_dump())
        if route_key in _IDENTIFIER_VALIDATION_PATHS:
            payload = NoLeakNotFoundError(code="RESOURCE_NOT_FOUND", message="Resource not found")
            return JSONResponse(status_code=404, content=payload.model_dump())

        return await request_validation_exception_handler(request, exc)

    app.include_router(convert_router, prefix=API_PREFIX)
    app.include_router(progress_router, prefix=API_PREFIX)
    app.include_router(download_router, prefix=API_PREFIX)
    app.include_router(system_router, prefix=API_PREFIX)

    return app


app = create_app()
