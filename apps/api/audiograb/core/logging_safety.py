"""Utilities for safe structured logging fields."""

from __future__ import annotations

import hashlib
from typing import Any


def safe_log_identifier(value: Any, *, prefix: str) -> str:
    """Return a deterministic non-reversible token for log correlation fields.

    Source URLs are user supplied and may carry tokens or personal data in
    their query strings, so they are only ever logged through this helper.
    """
    text = str(value or "").strip()
    if not text:
        return f"{prefix}-missing"

    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"


def format_size_mb(size: int) -> str:
    """Render a byte count as megabytes with one decimal, e.g. ``"3.4"``."""
    return f"{size / (1024 * 1024):.1f}"
