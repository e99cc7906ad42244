"""Build orchestrator - per-builder state machine with process management.

State machine:
STOPPED → WATCHING
   ↑__________|

While watching, every qualifying source change restarts a debounce timer;
when it fires, the live build (if any) is killed as a process tree and a
new one is spawned. At most one compiler process per builder is ever alive.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import uuid
from collections.abc import Callable
from functools import partial
from pathlib import PurePath
from typing import Any, Final

from ..config import BuilderConfig
from ..diagnostics import CaptureWindow, DiagnosticSet, DiagnosticsTracker, OutputStream, strip_ansi
from ..diagnostics.attribution import OUTPUT_DIRS
from ..diagnostics.parser import END_SIGNAL, MARKER, START_SIGNAL
from ..settings import DEFAULT_COMPILER, Settings
from .context import BuildContext
from .process import kill_process_tree, spawn_options
from .state import BuildEventType, BuilderState, LifecycleEvent, OutputEvent
from .watcher import WatcherFactory, WatchHandle, watch

logger = logging.getLogger(__name__)

# File extensions whose changes trigger a rebuild
SOURCE_EXTENSIONS: Final[tuple[str, ...]] = (".js", ".ts")

MACHINE_READABLE_FLAG: Final[str] = "--machine-readable"

# stderr lines escalated to a user-visible notification
SYNTAX_ERROR_PATTERN: Final[re.Pattern[str]] = re.compile(r"SyntaxError:\s(.+?):")

# Seconds to wait for a killed build to exit
KILL_WAIT_SECONDS: float = 5.0

# StreamReader line limit (a compiler line may carry a large JSON payload)
MAX_LINE_BYTES: int = 1_048_576

STATUS_MAX_LENGTH: int = 30

Listener = Callable[[Any], None]


def compose_command(config: BuilderConfig, compiler: str = DEFAULT_COMPILER) -> str:
    """Build the shell command of one build attempt.

    Pre-build commands, the compiler between the capture sentinels and the
    post-build commands run in one shell session, so environment set up by
    pre-build steps is visible to the compiler and to post-build steps.
    """
    parts: list[str] = []
    if config.pre_build:
        parts.append('echo "Running prebuild..." ; ' + " && ".join(config.pre_build) + " && ")
    parts.append('echo "Running compiler..." ; ')
    parts.append(f'echo "{START_SIGNAL}" ; ')
    parts.append(" ".join([compiler, *config.compiler_args, MACHINE_READABLE_FLAG]) + " ; ")
    parts.append(f'echo "{END_SIGNAL}"')
    if config.post_build:
        parts.append(' ; echo "Running postbuild..." ; ' + " && ".join(config.post_build))
    return "".join(parts)


def status_text(line: str) -> str:
    """Short status derived from the latest output line."""
    text = re.sub(r"\.{2,}", "", line, count=1).strip()
    if len(text) > STATUS_MAX_LENGTH:
        return text[:STATUS_MAX_LENGTH] + "..."
    return text


def is_watched_source(path: str | None) -> bool:
    """Whether a changed path should trigger a rebuild."""
    if not path:
        return False
    if not path.endswith(SOURCE_EXTENSIONS):
        return False
    return not any(part in OUTPUT_DIRS for part in PurePath(path).parts)


class BuildOrchestrator:
    """Owns the lifecycle of one builder.

    Not thread-safe; all methods must be called from one asyncio event loop.

    Args:
        config: Resolved builder configuration
        config_file: qx.build file defining the builder
        context: Shared output log, diagnostics and notifications
        settings: Compiler command and timing settings
        watcher_factory: Creates a started watch for a path
    """

    def __init__(
        self,
        config: BuilderConfig,
        config_file: str,
        context: BuildContext,
        settings: Settings | None = None,
        watcher_factory: WatcherFactory | None = None,
    ):
        self._config = config
        self._config_file = os.path.abspath(config_file)
        self._context = context
        self._settings = settings or Settings()
        self._watcher_factory = watcher_factory or partial(
            watch, interval=self._settings.poll_interval
        )
        self._state = BuilderState.STOPPED
        self._watchers: list[WatchHandle] = []
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._processes: dict[str, asyncio.subprocess.Process] = {}
        self._pumps: dict[str, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._lock = asyncio.Lock()
        self._generation = 0
        self._listeners: dict[BuildEventType, list[Listener]] = {t: [] for t in BuildEventType}
        self._status = ""
        self._tracker = DiagnosticsTracker(
            workspace=self.workspace,
            diagnostics=context.diagnostics.for_builder(self.key),
            source_dirs=lambda: self._config.watch_targets(),
        )

    # ============== Properties ==============

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> BuilderConfig:
        return self._config

    @property
    def config_file(self) -> str:
        return self._config_file

    @property
    def workspace(self) -> str:
        """Directory containing the builder's qx.build file."""
        return os.path.dirname(self._config_file)

    @property
    def identity(self) -> tuple[str, str]:
        return (self._config_file, self.name)

    @property
    def key(self) -> str:
        """Stable key of this builder in the shared context."""
        return f"{self.workspace}:{self.name}"

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def is_watching(self) -> bool:
        return self._state == BuilderState.WATCHING

    @property
    def is_building(self) -> bool:
        """Whether a build attempt has a live process."""
        return bool(self._processes)

    @property
    def live_build_ids(self) -> list[str]:
        return list(self._processes)

    @property
    def watch_count(self) -> int:
        return len(self._watchers)

    @property
    def status(self) -> str:
        return self._status

    @property
    def diagnostics(self) -> DiagnosticSet:
        return self._tracker.diagnostics

    # ============== Events ==============

    def on(self, event: BuildEventType, listener: Listener) -> None:
        """Register an event listener."""
        self._listeners[BuildEventType(event)].append(listener)

    def off(self, event: BuildEventType, listener: Listener) -> None:
        """Remove an event listener."""
        listeners = self._listeners[BuildEventType(event)]
        if listener in listeners:
            listeners.remove(listener)

    def _emit(self, event: BuildEventType, body: Any) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(body)
            except Exception:
                logger.exception(f"[{self.name}] {event.value} listener error")

    # ============== Output ==============

    def _system(self, message: str, prefix: str | None = None) -> None:
        tag = f"[{prefix}][system]" if prefix else "[system]"
        self._context.output.append(self.key, f"{tag}: {message}")
        logger.info(f"[{self.name}] {message}")

    async def _handle_line(
        self,
        build_id: str,
        prefix: str,
        line: str,
        stream: OutputStream,
        window: CaptureWindow,
    ) -> None:
        if build_id not in self._processes:
            return  # Attempt was killed, its diagnostics are gone

        inside = window.feed(line, stream)
        if inside is None:
            if line == END_SIGNAL:
                self._status = ""
            return

        self._context.output.append(self.key, f"[{prefix}][{stream.value}]: {line}")
        self._status = status_text(line)

        if stream == OutputStream.STDERR:
            match = SYNTAX_ERROR_PATTERN.search(line)
            if match:
                self._context.notify(
                    "error",
                    f"Qooxdoo build failed for {self.name}: syntax error in {match.group(1)}",
                )

        if inside:
            self._emit(BuildEventType.DATA, OutputEvent(build_id, stream, line))
            if line.startswith(MARKER):
                await self._tracker.hit(line, stream)

    async def _read_stream(
        self,
        build_id: str,
        prefix: str,
        reader: asyncio.StreamReader | None,
        stream: OutputStream,
        window: CaptureWindow,
    ) -> None:
        if reader is None:
            return
        while True:
            raw = await reader.readline()
            if not raw:
                break
            line = strip_ansi(raw.decode("utf-8", errors="replace"))
            if not line:
                continue
            await self._handle_line(build_id, prefix, line, stream, window)

    async def _pump(self, build_id: str, prefix: str, process: asyncio.subprocess.Process) -> None:
        """Stream one attempt's output until its process exits."""
        window = CaptureWindow()
        returncode: int | None = None
        try:
            await asyncio.gather(
                self._read_stream(build_id, prefix, process.stdout, OutputStream.STDOUT, window),
                self._read_stream(build_id, prefix, process.stderr, OutputStream.STDERR, window),
            )
            returncode = await process.wait()
        finally:
            self._processes.pop(build_id, None)
            self._pumps.pop(build_id, None)
        self._system(f"Exited with code {returncode}", prefix)
        self._emit(BuildEventType.DONE, LifecycleEvent(BuildEventType.DONE, build_id, returncode))

    # ============== Lifecycle ==============

    async def start(self) -> None:
        """Build now and rebuild whenever a watched source changes."""
        if self.is_watching:
            return
        self._system("Building with watcher...")
        self._state = BuilderState.WATCHING
        self._generation += 1
        generation = self._generation
        await self._build_if_current(generation)
        if generation != self._generation:
            return  # Stopped while the first attempt was spawning
        for target in self._config.watch_targets():
            self._system(f"Added watch target: {target}")
            self._watchers.append(self._watcher_factory(target, self._on_change))

    async def stop(self) -> None:
        """Close every watch and kill every live build.

        Starts and debounced builds still in progress when this runs spawn
        nothing and add no watches.
        """
        self._generation += 1
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        for watcher in self._watchers:
            watcher.close()
        self._watchers.clear()
        async with self._lock:
            await self._kill_processes()
        self._state = BuilderState.STOPPED
        self._status = ""
        self._system("Build process stopped.")

    async def dispose(self) -> None:
        """Stop and release this builder's diagnostics."""
        await self.stop()
        self._context.diagnostics.remove(self.key)

    def _on_change(self, path: str | None) -> None:
        if not is_watched_source(path):
            return
        self._system(f"File changed: {path}")
        self.debounce_build()

    def debounce_build(self) -> None:
        """(Re)start the debounce timer; the build fires once it elapses.

        A timer elapsing after the builder stopped is ignored.
        """
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(
            self._settings.debounce_seconds, self._fire_debounced
        )

    def _fire_debounced(self) -> None:
        self._debounce_handle = None
        if not self.is_watching:
            return
        task = asyncio.get_running_loop().create_task(
            self._build_if_current(self._generation)
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[{self.name}] Debounced build failed: {task.exception()}")

    async def _kill_processes(self) -> None:
        if not self._processes:
            return
        self._system("Killing processes...")
        for build_id, process in list(self._processes.items()):
            self._processes.pop(build_id, None)
            await kill_process_tree(process.pid)
            try:
                await asyncio.wait_for(process.wait(), timeout=KILL_WAIT_SECONDS)
            except asyncio.TimeoutError:
                logger.warning(f"[{self.name}] Build {build_id} did not exit after kill")
            self._emit(BuildEventType.KILL, LifecycleEvent(BuildEventType.KILL, build_id))

    async def build(self) -> str:
        """Kill the live build, if any, and spawn a new attempt.

        Returns:
            Id of the new build attempt
        """
        async with self._lock:
            return await self._spawn()

    async def _build_if_current(self, generation: int) -> str | None:
        async with self._lock:
            if generation != self._generation:
                return None
            return await self._spawn()

    async def _spawn(self) -> str:
        await self._kill_processes()

        build_id = uuid.uuid4().hex[:6]
        prefix = f"BUILD:{build_id}".upper()
        self._tracker.reset()
        self._system("Building...", prefix)

        command = compose_command(self._config, self._settings.compiler)
        logger.debug(f"[{self.name}] Running: {command}")
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._config.work_dir,
                limit=MAX_LINE_BYTES,
                **spawn_options(),
            )
        except OSError as e:
            self._context.notify("error", f"Failed to start build for {self.name}: {e}")
            self._emit(BuildEventType.DONE, LifecycleEvent(BuildEventType.DONE, build_id))
            return build_id

        self._processes[build_id] = process
        self._emit(BuildEventType.INIT, LifecycleEvent(BuildEventType.INIT, build_id))
        self._pumps[build_id] = asyncio.get_running_loop().create_task(
            self._pump(build_id, prefix, process)
        )
        return build_id

    async def wait(self) -> None:
        """Wait until every live or starting build attempt has exited."""
        while self._pumps or self._tasks:
            await asyncio.gather(
                *list(self._pumps.values()), *list(self._tasks), return_exceptions=True
            )

    async def update_config(self, config: BuilderConfig) -> bool:
        """Replace the configuration, restarting if watching and it changed.

        Returns:
            True if the builder was restarted
        """
        if config.name != self.name:
            raise ValueError(f"Cannot rename builder '{self.name}' to '{config.name}'")
        same = config.same_as(self._config)
        self._config = config
        if not self.is_watching or same:
            return False
        self._context.notify("info", f"Restarting build process for {self.name}")
        await self.stop()
        await self.start()
        return True

    # ============== Inspection ==============

    def to_json(self) -> dict[str, Any]:
        """Resolved configuration, in qx.build shape."""
        return self._config.to_dict()

    def to_dict(self) -> dict[str, Any]:
        """Builder status for JSON serialization."""
        return {
            "name": self.name,
            "configFile": self._config_file,
            "state": self._state.value,
            "building": self.is_building,
            "buildIds": self.live_build_ids,
            "watchCount": self.watch_count,
            "status": self._status,
            "diagnostics": self.diagnostics.counts(),
        }
