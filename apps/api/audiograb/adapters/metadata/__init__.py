"""Metadata source adapters."""

from .base import MetadataSource, MetadataSourceError, fallback_thumbnail
from .oembed import OEmbedMetadataSource
from .ytdlp import YtDlpMetadataSource

__all__ = [
    "MetadataSource",
    "MetadataSourceError",
    "OEmbedMetadataSource",
    "YtDlpMetadataSource",
    "fallback_thumbnail",
]
