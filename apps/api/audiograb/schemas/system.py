"""System diagnostics schemas."""

from typing import Literal

from pydantic import BaseModel


class ToolChecks(BaseModel):
    yt_dlp: bool = False
    youtube_dl: bool = False
    ffmpeg: bool = False
    python: bool = True


class SystemCheckResponse(BaseModel):
    status: Literal["success", "error"]
    checks: ToolChecks
    versions: dict[str, str]
    recommendations: list[str]
    strategy: str


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
