"""Process tree management for build attempts.

The compiler may fork helpers, so killing only the shell that runs a build
would leave them running. Each build is spawned as the leader of its own
session (POSIX) or process group (Windows) and killed as a whole tree.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
from typing import Any

logger = logging.getLogger(__name__)


def spawn_options() -> dict[str, Any]:
    """Keyword arguments that make a spawned process the root of its own tree."""
    if os.name == "nt":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


async def _kill_tree_windows(pid: int, timeout: float) -> bool:
    try:
        proc = await asyncio.create_subprocess_exec(
            "taskkill",
            "/F",
            "/T",
            "/PID",
            str(pid),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        await asyncio.wait_for(proc.wait(), timeout=timeout)
        return proc.returncode == 0
    except asyncio.TimeoutError:
        logger.warning(f"taskkill timed out for PID {pid}")
    except OSError as e:
        logger.warning(f"Failed to kill process tree {pid}: {e}")
    return False


def _kill_tree_unix(pid: int) -> bool:
    try:
        os.killpg(pid, signal.SIGKILL)
        return True
    except ProcessLookupError:
        return False
    except PermissionError as e:
        logger.warning(f"Failed to kill process group {pid}: {e}")
    # Fall back to the leader alone
    try:
        os.kill(pid, signal.SIGKILL)
        return True
    except (ProcessLookupError, PermissionError):
        return False


async def kill_process_tree(pid: int | None, timeout: float = 2.0) -> bool:
    """Kill a process and all of its descendants.

    Args:
        pid: Root process id (the spawned shell)
        timeout: Timeout for the kill command on Windows

    Returns:
        True if a kill signal was delivered
    """
    if pid is None:
        return False
    if os.name == "nt":
        killed = await _kill_tree_windows(pid, timeout)
    else:
        killed = _kill_tree_unix(pid)
    if killed:
        logger.debug(f"Killed process tree rooted at PID {pid}")
    return killed
