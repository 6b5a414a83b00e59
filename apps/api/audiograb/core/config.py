"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_COBALT_ENDPOINT = "https://api.cobalt.tools/api/json"


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    temp_dir: Path = Path("temp")
    ytdlp_binary: str = "yt-dlp"
    ffmpeg_binary: str = "ffmpeg"

    probe_timeout_seconds: float = 3.0
    capability_cache_seconds: float = 60.0

    metadata_cache_ttl_seconds: float = 3600.0
    rich_metadata_timeout_seconds: float = 5.0
    oembed_timeout_seconds: float = 3.0
    oembed_endpoint: str = "https://www.youtube.com/oembed"

    acquisition_timeout_seconds: float = 600.0
    online_services: list[str] = [_COBALT_ENDPOINT]
    online_service_timeout_seconds: float = 60.0
    placeholder_enabled: bool = True

    serve_grace_seconds: float = 300.0
    max_artifact_age_seconds: float = 1800.0
    reaper_interval_seconds: float = 30.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="AUDIOGRAB_", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
