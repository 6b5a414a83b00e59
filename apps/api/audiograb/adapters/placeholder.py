"""Synthesized placeholder audio used when no real source is reachable."""

from __future__ import annotations

import hashlib
import io
import math
from pathlib import Path
import struct
import wave

_NOTE_FREQUENCIES = (440, 523, 659, 784, 880, 1047)
_AMPLITUDE = 0.3


def frequency_for(video_id: str) -> int:
    """Map an identifier onto one of a few musical notes, deterministically."""
    digest = hashlib.sha256(video_id.encode("utf-8")).digest()
    return _NOTE_FREQUENCIES[digest[0] % len(_NOTE_FREQUENCIES)]


def render_tone(*, frequency: float, seconds: float, sample_rate: int) -> bytes:
    """Return a mono 16-bit PCM WAV file containing a sine tone."""
    frame_count = int(sample_rate * seconds)
    peak = 32767 * _AMPLITUDE
    frames = bytearray()
    for index in range(frame_count):
        sample = int(peak * math.sin(2 * math.pi * frequency * index / sample_rate))
        frames += struct.pack("<h", sample)

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(bytes(frames))
    return buffer.getvalue()


def write_placeholder(destination: Path, video_id: str, *, seconds: float = 10, sample_rate: int = 22050) -> Path:
    destination.write_bytes(render_tone(frequency=frequency_for(video_id), seconds=seconds, sample_rate=sample_rate))
    return destination
