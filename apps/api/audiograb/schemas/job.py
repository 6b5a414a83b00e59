"""Conversion job API schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    READY = "READY"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class StrategyId(str, Enum):
    """Acquisition strategies in descending order of expected speed."""

    NATIVE_TRANSCODE = "native_transcode"
    DIRECT_AUDIO = "direct_audio"
    ONLINE_FALLBACK = "online_fallback"
    PLACEHOLDER = "placeholder"


class AudioFormat(str, Enum):
    MP3 = "mp3"
    M4A = "m4a"
    WEBM = "webm"
    OPUS = "opus"
    AAC = "aac"
    WAV = "wav"


class VideoInfo(BaseModel):
    title: str
    thumbnail: str
    duration: int
    duration_is_estimate: bool = False


class ConvertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: str | None = Field(default=None, alias="videoId")
    url: str = Field(min_length=1)


class ConvertResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    thumbnail: str
    duration: int
    file_size: str = Field(alias="fileSize")
    download_url: str = Field(alias="downloadUrl")
    quality: str
    format: AudioFormat
    is_demo: bool = Field(default=False, alias="isDemo")
    status: str


class ProgressResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exists: bool
    ready: bool
    size: int | None = None
    size_in_mb: str | None = Field(default=None, alias="sizeInMB")
    format: AudioFormat | None = None
    status: str
    error: str | None = None


class Job(BaseModel):
    id: str
    url: str
    status: JobStatus
    strategy: StrategyId
    format: AudioFormat | None = None
    failure_reason: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
