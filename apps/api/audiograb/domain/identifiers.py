"""Request identifier and source URL validation."""

from __future__ import annotations

import re
from urllib.parse import urlparse

# Identifiers become file names under the shared temp directory.
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
_YOUTUBE_ID_PATTERN = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?|shorts)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})"
)


def is_valid_identifier(value: str) -> bool:
    return bool(_IDENTIFIER_PATTERN.fullmatch(value))


def is_valid_source_url(value: str) -> bool:
    parsed = urlparse(value.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def extract_video_id(url: str) -> str | None:
    """Derive the 11 character video id from common YouTube URL shapes."""
    match = _YOUTUBE_ID_PATTERN.search(url)
    if match is None:
        return None
    candidate = match.group(1)
    return candidate if is_valid_identifier(candidate) else None
