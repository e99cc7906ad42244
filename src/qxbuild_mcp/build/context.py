"""Process-wide collaborators handed to every builder.

Holds the output log, the diagnostics collection and the user-visible
notifications, so builders share no module level globals.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..diagnostics import DiagnosticsCollection
from ..settings import DEFAULT_OUTPUT_LINES

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS: int = 200


class OutputLog:
    """Bounded output buffers, one per builder key."""

    def __init__(self, max_lines: int = DEFAULT_OUTPUT_LINES) -> None:
        self._max_lines = max_lines
        self._buffers: dict[str, deque[str]] = {}

    def append(self, key: str, line: str) -> None:
        if key not in self._buffers:
            self._buffers[key] = deque(maxlen=self._max_lines)
        self._buffers[key].append(line)

    def lines(self, key: str) -> list[str]:
        return list(self._buffers.get(key, ()))

    def tail(self, key: str, count: int = 50) -> list[str]:
        lines = self.lines(key)
        return lines[-count:] if count > 0 else []

    def clear(self, key: str | None = None) -> None:
        if key is None:
            self._buffers.clear()
        else:
            self._buffers.pop(key, None)


@dataclass
class Notification:
    """User-visible message."""

    level: str
    message: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "message": self.message, "timestamp": self.timestamp}


class BuildContext:
    """Shared state of all builders of one server process."""

    def __init__(self, output_lines: int = DEFAULT_OUTPUT_LINES) -> None:
        self.output = OutputLog(output_lines)
        self.diagnostics = DiagnosticsCollection()
        self.notifications: deque[Notification] = deque(maxlen=MAX_NOTIFICATIONS)
        self._listeners: list[Callable[[Notification], None]] = []

    def on_notification(self, listener: Callable[[Notification], None]) -> None:
        """Register notification listener."""
        self._listeners.append(listener)

    def notify(self, level: str, message: str) -> Notification:
        """Record a user-visible message and notify listeners."""
        notification = Notification(level, message)
        self.notifications.append(notification)
        log = logger.error if level == "error" else logger.info
        log(message)
        for listener in self._listeners:
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener error")
        return notification
