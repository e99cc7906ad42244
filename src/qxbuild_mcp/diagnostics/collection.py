"""Positioned diagnostics and their per-builder collections."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class DiagnosticSeverity(str, Enum):
    """Diagnostic severity levels."""

    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"
    HINT = "hint"


@dataclass(frozen=True)
class Position:
    """Zero-based line, column position."""

    line: int
    column: int

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True)
class Range:
    """Start and end positions of a diagnostic."""

    start: Position
    end: Position

    @classmethod
    def empty(cls) -> Range:
        return cls(Position(0, 0), Position(0, 0))

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}


@dataclass
class Diagnostic:
    """One positioned, severity-tagged issue."""

    range: Range
    message: str
    severity: DiagnosticSeverity
    code: str | None = None
    source: str = "qooxdoo"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "range": self.range.to_dict(),
            "message": self.message,
            "severity": self.severity.value,
            "source": self.source,
        }
        if self.code:
            result["code"] = self.code
        return result


@dataclass
class DiagnosticSet:
    """Diagnostics of one builder, keyed by file (or workspace root).

    Cleared in full when a build attempt starts, appended to while its
    output arrives.
    """

    name: str
    _entries: dict[str, list[Diagnostic]] = field(default_factory=dict)

    def clear(self) -> None:
        self._entries.clear()

    def append(self, target: str, *diagnostics: Diagnostic) -> None:
        """Append diagnostics to the list for target."""
        self._entries.setdefault(target, []).extend(diagnostics)
        logger.debug(f"[{self.name}] Appended {len(diagnostics)} diagnostics to {target}")

    def get(self, target: str) -> list[Diagnostic]:
        return list(self._entries.get(target, []))

    def targets(self) -> list[str]:
        return list(self._entries)

    def __iter__(self) -> Iterator[tuple[str, list[Diagnostic]]]:
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return sum(len(items) for items in self._entries.values())

    def counts(self) -> dict[str, int]:
        """Number of diagnostics per severity."""
        result = {severity.value: 0 for severity in DiagnosticSeverity}
        for items in self._entries.values():
            for diagnostic in items:
                result[diagnostic.severity.value] += 1
        return result

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            target: [d.to_dict() for d in items] for target, items in self._entries.items()
        }


class DiagnosticsCollection:
    """All diagnostic sets of one server process, one per builder identity."""

    def __init__(self) -> None:
        self._sets: dict[str, DiagnosticSet] = {}

    def for_builder(self, key: str) -> DiagnosticSet:
        """Get or create the set owned by builder key."""
        if key not in self._sets:
            self._sets[key] = DiagnosticSet(key)
        return self._sets[key]

    def remove(self, key: str) -> bool:
        return self._sets.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._sets)

    def to_dict(self) -> dict[str, Any]:
        return {key: dset.to_dict() for key, dset in self._sets.items()}
