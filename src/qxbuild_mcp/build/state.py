"""Builder state and event types.

State machine for one builder:
STOPPED → WATCHING
   ↑__________|

While WATCHING, a build attempt may or may not have a live process.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..diagnostics import OutputStream


class BuilderState(str, Enum):
    """Builder lifecycle states."""

    STOPPED = "stopped"
    WATCHING = "watching"


class BuildEventType(str, Enum):
    """Events published by a builder."""

    DATA = "data"  # Output line from inside the capture window
    INIT = "init"  # Build attempt spawned
    KILL = "kill"  # Build attempt killed before exiting
    DONE = "done"  # Build attempt process exited


@dataclass
class OutputEvent:
    """Body of a data event."""

    build_id: str
    stream: OutputStream
    line: str

    def to_dict(self) -> dict[str, Any]:
        return {"buildId": self.build_id, "stream": self.stream.value, "line": self.line}


@dataclass
class LifecycleEvent:
    """Body of init/kill/done events."""

    type: BuildEventType
    build_id: str
    returncode: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value, "buildId": self.build_id}
        if self.returncode is not None:
            result["returncode"] = self.returncode
        return result
