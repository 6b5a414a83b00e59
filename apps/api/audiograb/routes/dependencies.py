"""Dependency wiring for routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from audiograb.adapters.capabilities import CapabilityProber
from audiograb.core.config import Settings
from audiograb.repositories.memory import InMemoryStore
from audiograb.services.acquisition import AcquisitionRunner
from audiograb.services.artifacts import ArtifactStore
from audiograb.services.jobs import JobService, MetadataSources
from audiograb.services.metadata import MetadataFetcher
from audiograb.services.reaper import Reaper


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> InMemoryStore:
    return request.app.state.store


def get_artifacts(request: Request) -> ArtifactStore:
    return request.app.state.artifacts


def get_prober(request: Request) -> CapabilityProber:
    return request.app.state.prober


def get_reaper(request: Request) -> Reaper:
    return request.app.state.reaper


def get_job_service(
    request: Request,
    store: Annotated[InMemoryStore, Depends(get_store)],
    artifacts: Annotated[ArtifactStore, Depends(get_artifacts)],
    prober: Annotated[CapabilityProber, Depends(get_prober)],
    reaper: Annotated[Reaper, Depends(get_reaper)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> JobService:
    state = request.app.state
    metadata: MetadataFetcher = state.metadata
    metadata_sources: MetadataSources = state.metadata_sources
    runner: AcquisitionRunner = state.runner
    return JobService(
        store=store,
        artifacts=artifacts,
        prober=prober,
        metadata=metadata,
        metadata_sources=metadata_sources,
        runner=runner,
        reaper=reaper,
        placeholder_enabled=settings.placeholder_enabled,
        api_prefix=state.api_prefix,
    )
