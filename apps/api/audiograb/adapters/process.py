"""Async execution of external command line tools."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class ProcessError(Exception):
    """Raised when an external tool cannot be run or exits non-zero."""


class ProcessTimeoutError(ProcessError):
    """Raised when an external tool exceeds its time budget."""


@dataclass(frozen=True, slots=True)
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str


async def run_process(
    args: list[str],
    *,
    timeout: float | None,
    cwd: Path | None = None,
    check: bool = True,
) -> ProcessResult:
    """Run ``args`` without a shell and collect its output.

    The child is killed when ``timeout`` elapses. A missing binary raises
    :class:`ProcessError` so callers can treat it like any other failure.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
        )
    except (FileNotFoundError, PermissionError) as exc:
        raise ProcessError(f"{args[0]} is not available") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        await _kill(proc)
        raise ProcessTimeoutError(f"{args[0]} timed out after {timeout}s") from exc
    except asyncio.CancelledError:
        await _kill(proc)
        raise

    result = ProcessResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    if check and result.returncode != 0:
        tail = result.stderr.strip().splitlines()[-1:] or [""]
        raise ProcessError(f"{args[0]} exited with {result.returncode}: {tail[0]}")
    return result


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=5)
    except asyncio.TimeoutError:
        logger.warning("process.kill_timeout pid=%s", proc.pid)
