"""Polling file system watcher.

Periodically snapshots the modification time and size of every file under
a path and reports each path whose entry appeared, vanished or changed.
Duplicate and coalesced notifications are possible; consumers debounce.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

Snapshot = dict[str, tuple[int, int]]
WatchCallback = Callable[[str | None], None]


class WatchHandle(Protocol):
    """Active watch returned by a watcher factory."""

    @property
    def closed(self) -> bool: ...

    def close(self) -> None: ...


WatcherFactory = Callable[[str, WatchCallback], WatchHandle]


def take_snapshot(target: str) -> Snapshot:
    """Map each file under target (or target itself) to (mtime_ns, size)."""
    snapshot: Snapshot = {}
    if os.path.isfile(target):
        try:
            stat = os.stat(target)
            snapshot[os.path.basename(target)] = (stat.st_mtime_ns, stat.st_size)
        except OSError:
            pass
        return snapshot
    if not os.path.isdir(target):
        return snapshot

    for dirpath, _dirnames, filenames in os.walk(target):
        for filename in filenames:
            path = os.path.join(dirpath, filename)
            try:
                stat = os.stat(path)
            except OSError:
                continue  # Removed between listing and stat
            snapshot[os.path.relpath(path, target)] = (stat.st_mtime_ns, stat.st_size)
    return snapshot


def diff_snapshots(old: Snapshot, new: Snapshot) -> list[str]:
    """Relative paths created, deleted or modified between two snapshots."""
    changed = {path for path in new if old.get(path) != new[path]}
    changed.update(path for path in old if path not in new)
    return sorted(changed)


class PollingWatcher:
    """Recursive watch of one file or directory.

    Callbacks receive the changed path relative to the watched directory
    (or the file name when a single file is watched).
    """

    def __init__(self, target: str, callback: WatchCallback, interval: float = 0.5):
        self.target = target
        self._callback = callback
        self._interval = interval
        self._snapshot: Snapshot = {}
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Take the initial snapshot and begin polling."""
        if self._task is not None:
            return
        self._snapshot = take_snapshot(self.target)
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def poll(self) -> list[str]:
        """Scan once and dispatch changes. Returns the changed paths."""
        snapshot = await asyncio.to_thread(take_snapshot, self.target)
        changed = diff_snapshots(self._snapshot, snapshot)
        self._snapshot = snapshot
        for path in changed:
            if self._closed:
                break
            try:
                self._callback(path)
            except Exception:
                logger.exception(f"Watch callback error for {self.target}")
        return changed

    async def _run(self) -> None:
        while not self._closed:
            await asyncio.sleep(self._interval)
            if self._closed:
                break
            await self.poll()

    def close(self) -> None:
        """Stop polling. Safe to call more than once."""
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


def watch(target: str, callback: WatchCallback, interval: float = 0.5) -> PollingWatcher:
    """Start a polling watch on target. Must be called inside a running loop."""
    watcher = PollingWatcher(target, callback, interval)
    watcher.start()
    logger.debug(f"Watching {target} every {interval}s")
    return watcher
