"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final

logger = logging.getLogger(__name__)

# Name of the builder config file marking a project root
BUILD_FILE_NAME: Final[str] = "qx.build"

DEFAULT_COMPILER: Final[str] = "qx compile"
DEFAULT_DEBOUNCE_SECONDS: Final[float] = 0.5
DEFAULT_POLL_INTERVAL: Final[float] = 0.5
DEFAULT_OUTPUT_LINES: Final[int] = 5000


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"{name}={value!r} is not a number, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"{name}={value!r} is not an integer, using {default}")
        return default


@dataclass
class Settings:
    """Settings shared by every builder of one server process."""

    compiler: str = DEFAULT_COMPILER
    """Command line of the wrapped compiler, without arguments."""

    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    """Quiet period after the last source change before a rebuild fires."""

    poll_interval: float = DEFAULT_POLL_INTERVAL
    """Interval between file system scans of the polling watcher."""

    output_lines: int = DEFAULT_OUTPUT_LINES
    """Number of output lines kept per builder."""

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from QXBUILD_* environment variables."""
        return cls(
            compiler=os.environ.get("QXBUILD_COMPILER") or DEFAULT_COMPILER,
            debounce_seconds=_env_float("QXBUILD_DEBOUNCE_SECONDS", DEFAULT_DEBOUNCE_SECONDS),
            poll_interval=_env_float("QXBUILD_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            output_lines=_env_int("QXBUILD_OUTPUT_LINES", DEFAULT_OUTPUT_LINES),
        )
