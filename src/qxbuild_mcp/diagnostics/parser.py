"""Line-oriented decoder of the compiler's machine readable output.

The wrapped compiler prints its structured lines between two sentinel lines:

    ####START####
    ##qx.tool.compiler.application.noBootPart:[]
    ##my.Class:[3,1]:[3,10]:error: Something broke
    ####END####

Only lines seen inside that window and starting with the ``##`` marker are
parsed. Everything else is plain build output.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from ..errors import ParseError
from .collection import DiagnosticSeverity

logger = logging.getLogger(__name__)

START_SIGNAL: Final[str] = "####START####"
END_SIGNAL: Final[str] = "####END####"
MARKER: Final[str] = "##"

ANSI_PATTERN: Final[re.Pattern[str]] = re.compile(r"\x1b\[[0-9;]*m")
SEPARATOR_PATTERN: Final[re.Pattern[str]] = re.compile(r"[:\s]+")


class OutputStream(str, Enum):
    """Process output streams."""

    STDOUT = "stdout"
    STDERR = "stderr"


def strip_ansi(text: str) -> str:
    """Remove ANSI color sequences and surrounding whitespace."""
    return ANSI_PATTERN.sub("", text).strip()


class CaptureWindow:
    """Inside/outside state of the structured output window."""

    def __init__(self) -> None:
        self.capturing = False

    def feed(self, line: str, stream: OutputStream) -> bool | None:
        """Advance the window with one cleaned line.

        Returns:
            None for sentinel lines, otherwise whether the line is inside
            the window
        """
        if stream == OutputStream.STDOUT:
            if line == START_SIGNAL:
                self.capturing = True
                return None
            if line == END_SIGNAL:
                self.capturing = False
                return None
        return self.capturing


@dataclass
class ProjectLogItem:
    """Whole-workspace issue, rendered from a message template."""

    message_id: str
    args: list[Any]
    kind: str = "project"


@dataclass
class ClassLogItem:
    """Issue reported against one class."""

    classname: str
    start_line: int
    start_column: int
    end_line: int
    end_column: int
    level: str | None
    message: str
    kind: str = "class"


LogItem = ProjectLogItem | ClassLogItem


def _parse_project_item(data: str) -> ProjectLogItem:
    message_id, sep, rest = data.partition(":")
    if not sep:
        raise ParseError("missing ':' after message id")
    try:
        args = json.loads(rest)
    except json.JSONDecodeError as e:
        raise ParseError(f"arguments are not JSON: {e}") from e
    if not isinstance(args, list):
        raise ParseError("arguments are not a JSON array")
    return ProjectLogItem(message_id=message_id, args=args)


def _parse_position(token: str | None, which: str) -> tuple[int, int]:
    if token is None:
        raise ParseError(f"missing {which} position")
    try:
        position = json.loads(token)
    except json.JSONDecodeError as e:
        raise ParseError(f"{which} position is not JSON: {e}") from e
    if (
        not isinstance(position, list)
        or len(position) < 2
        or not all(isinstance(n, int) for n in position[:2])
    ):
        raise ParseError(f"{which} position must be [line, column]")
    return position[0], position[1]


def _parse_class_item(data: str) -> ClassLogItem:
    tokens = SEPARATOR_PATTERN.split(data)
    classname = tokens[0] if tokens else ""
    if not classname:
        raise ParseError("missing class name")
    start = _parse_position(tokens[1] if len(tokens) > 1 else None, "start")
    end = _parse_position(tokens[2] if len(tokens) > 2 else None, "end")
    level = tokens[3] if len(tokens) > 3 and tokens[3] else None
    return ClassLogItem(
        classname=classname,
        start_line=start[0],
        start_column=start[1],
        end_line=end[0],
        end_column=end[1],
        level=level,
        message=" ".join(tokens[4:]).strip(),
    )


def parse_log_item(line: str) -> LogItem | None:
    """Parse one marker-prefixed line.

    The project shape (``id:[args]``) is tried first, then the class shape
    (``class:[l,c]:[l,c]:level: message``).

    Returns:
        The parsed item, or None if the line matches neither shape or has
        no marker
    """
    if not line.startswith(MARKER):
        return None
    data = line[len(MARKER):]

    failures = []
    for parse in (_parse_project_item, _parse_class_item):
        try:
            return parse(data)
        except ParseError as e:
            failures.append(str(e))

    logger.debug(f"Failed to parse log item: {data!r} ({'; '.join(failures)})")
    return None


def decode_severity(level: str | None, stream: OutputStream | None) -> DiagnosticSeverity:
    """Map a compiler level token, or failing that the stream, to a severity."""
    if level == "error":
        return DiagnosticSeverity.ERROR
    if level == "warning":
        return DiagnosticSeverity.WARNING
    if level == "trace":
        return DiagnosticSeverity.INFORMATION
    if stream == OutputStream.STDOUT:
        return DiagnosticSeverity.INFORMATION
    if stream == OutputStream.STDERR:
        return DiagnosticSeverity.ERROR
    return DiagnosticSeverity.HINT
