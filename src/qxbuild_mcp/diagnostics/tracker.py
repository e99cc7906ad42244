"""Fold structured compiler output into a builder's diagnostics."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from .attribution import find_files_for_class
from .collection import Diagnostic, DiagnosticSet, Position, Range
from .messages import format_message, lookup
from .parser import ClassLogItem, OutputStream, ProjectLogItem, decode_severity, parse_log_item

logger = logging.getLogger(__name__)


class DiagnosticsTracker:
    """Turns captured output lines into positioned diagnostics.

    Args:
        workspace: Directory project issues and unattributed class issues
            are reported against
        diagnostics: Set owned by the builder
        source_dirs: Callable returning the directories searched for class files
    """

    def __init__(
        self,
        workspace: str,
        diagnostics: DiagnosticSet,
        source_dirs: Callable[[], Iterable[str]],
    ):
        self._workspace = workspace
        self._diagnostics = diagnostics
        self._source_dirs = source_dirs
        self._attempt = 0
        self._files: dict[str, list[str]] = {}

    @property
    def diagnostics(self) -> DiagnosticSet:
        return self._diagnostics

    def reset(self) -> None:
        """Forget every diagnostic and file lookup of the previous build attempt."""
        self._attempt += 1
        self._files.clear()
        self._diagnostics.clear()

    async def hit(self, line: str, stream: OutputStream) -> list[Diagnostic]:
        """Process one cleaned line from inside the capture window.

        Class files are searched in a worker thread. A line whose attempt is
        reset while the search runs is dropped.

        Returns:
            Diagnostics appended for this line
        """
        item = parse_log_item(line)
        if item is None:
            return []
        if isinstance(item, ProjectLogItem):
            return self._project_issue(item, stream)
        attempt = self._attempt
        files = await self._find_files(item.classname)
        if attempt != self._attempt:
            return []
        return self._class_issue(item, stream, files)

    async def _find_files(self, classname: str) -> list[str]:
        files = self._files.get(classname)
        if files is None:
            attempt = self._attempt
            files = await asyncio.to_thread(
                find_files_for_class, classname, list(self._source_dirs())
            )
            if attempt == self._attempt:
                self._files[classname] = files
        return files

    def _project_issue(self, item: ProjectLogItem, stream: OutputStream) -> list[Diagnostic]:
        template = lookup(item.message_id)
        if template is None:
            return []
        diagnostic = Diagnostic(
            range=Range.empty(),
            message=format_message(template, item.args),
            severity=decode_severity(None, stream),
            code=item.message_id,
        )
        self._diagnostics.append(self._workspace, diagnostic)
        return [diagnostic]

    def _class_issue(
        self, item: ClassLogItem, stream: OutputStream, files: list[str]
    ) -> list[Diagnostic]:
        message = item.message
        if not files:
            message += f"\nno source file found for class {item.classname}"
        elif len(files) > 1:
            message += "\nmultiple files found:" + "".join(f"\n- {f}" for f in files)

        issue_range = Range(
            Position(item.start_line - 1, item.start_column),
            Position(item.end_line - 1, item.end_column),
        )
        severity = decode_severity(item.level, stream)
        targets = files or [self._workspace]
        appended = []
        for target in targets:
            diagnostic = Diagnostic(range=issue_range, message=message, severity=severity)
            self._diagnostics.append(target, diagnostic)
            appended.append(diagnostic)
        return appended
