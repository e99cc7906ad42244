"""Diagnostics parsing of the compiler's machine readable output."""

from .collection import (
    Diagnostic,
    DiagnosticsCollection,
    DiagnosticSet,
    DiagnosticSeverity,
    Position,
    Range,
)
from .parser import CaptureWindow, OutputStream, parse_log_item, strip_ansi
from .tracker import DiagnosticsTracker

__all__ = [
    "CaptureWindow",
    "Diagnostic",
    "DiagnosticsCollection",
    "DiagnosticSet",
    "DiagnosticSeverity",
    "DiagnosticsTracker",
    "OutputStream",
    "Position",
    "Range",
    "parse_log_item",
    "strip_ansi",
]
