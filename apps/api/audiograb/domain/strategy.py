"""Acquisition strategy selection.

Strategies are ordered by expected speed: the native toolchain (yt-dlp with
ffmpeg) first, a plain yt-dlp audio download second, third-party online
services third. Selection is a pure function of the capability flags so the
same host state always yields the same plan.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from audiograb.schemas.job import AudioFormat, StrategyId


@dataclass(frozen=True, slots=True)
class Capabilities:
    has_downloader: bool
    has_transcoder: bool
    versions: dict[str, str] = field(default_factory=dict, compare=False)


_FALLBACK_ORDER: tuple[StrategyId, ...] = (
    StrategyId.NATIVE_TRANSCODE,
    StrategyId.DIRECT_AUDIO,
    StrategyId.ONLINE_FALLBACK,
)

_EXPECTED_OUTPUT: dict[StrategyId, tuple[AudioFormat, str]] = {
    StrategyId.NATIVE_TRANSCODE: (AudioFormat.MP3, "192kbps MP3 (Fast)"),
    StrategyId.DIRECT_AUDIO: (AudioFormat.M4A, "Original"),
    StrategyId.ONLINE_FALLBACK: (AudioFormat.MP3, "Online Service"),
    StrategyId.PLACEHOLDER: (AudioFormat.WAV, "Demo"),
}


def select_strategy(capabilities: Capabilities) -> StrategyId:
    """Pick the fastest strategy the host can run."""
    if capabilities.has_downloader and capabilities.has_transcoder:
        return StrategyId.NATIVE_TRANSCODE
    if capabilities.has_downloader:
        return StrategyId.DIRECT_AUDIO
    return StrategyId.ONLINE_FALLBACK


def strategy_chain(capabilities: Capabilities, *, include_placeholder: bool = True) -> list[StrategyId]:
    """Return the ordered fallback plan starting at the selected strategy."""
    selected = select_strategy(capabilities)
    chain = list(_FALLBACK_ORDER[_FALLBACK_ORDER.index(selected):])
    if include_placeholder:
        chain.append(StrategyId.PLACEHOLDER)
    return chain


def expected_output(strategy: StrategyId) -> tuple[AudioFormat, str]:
    """Advertised (format, quality label) before the run has produced anything."""
    return _EXPECTED_OUTPUT[strategy]
