"""
Platform command runner shared by the audio and desktop adapters.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
import sys

logger = logging.getLogger(__name__)


def platform_name() -> str:
    if sys.platform.startswith("darwin"):
        return "darwin"
    if sys.platform.startswith("win"):
        return "win32"
    return "linux"


def available(program: str) -> bool:
    return shutil.which(program) is not None


async def run_command(*args: str, timeout: float = 30.0) -> bool:
    """Run a command to completion. Returns True on exit status 0."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        logger.debug("Cannot start %s: %s", args[0], exc)
        return False
    try:
        await asyncio.wait_for(proc.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug("%s timed out after %.0fs, killed", args[0], timeout)
        return False
    finally:
        # reached on timeout and on cancellation
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
    return proc.returncode == 0
