"""Builder registry - maps qx.build files to their builders.

Provides:
- Discovery of qx.build files below workspace roots
- Reconciliation of a file's builder set whenever the file changes
- Lookup of builders by name for the MCP tools
"""

from __future__ import annotations

import asyncio
import logging
import os
from functools import partial
from typing import Any

from ..config import build_file_for, load_build_file
from ..errors import BuilderNotFoundError, ConfigError
from ..settings import Settings
from ..utils.project import find_build_files
from .context import BuildContext
from .orchestrator import BuildOrchestrator
from .watcher import WatcherFactory, WatchHandle, watch

logger = logging.getLogger(__name__)


class BuilderRegistry:
    """Owns every builder of every discovered qx.build file.

    Usage:
        registry = BuilderRegistry()
        await registry.refresh(["/path/to/workspace"])
        await registry.get("My App").start()
    """

    def __init__(
        self,
        context: BuildContext | None = None,
        settings: Settings | None = None,
        watcher_factory: WatcherFactory | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._context = context or BuildContext(self._settings.output_lines)
        self._watcher_factory = watcher_factory or partial(
            watch, interval=self._settings.poll_interval
        )
        self._builders: dict[str, dict[str, BuildOrchestrator]] = {}
        self._config_watchers: dict[str, WatchHandle] = {}
        self._workspaces: list[str] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def context(self) -> BuildContext:
        return self._context

    @property
    def workspaces(self) -> list[str]:
        return list(self._workspaces)

    def config_files(self) -> list[str]:
        return list(self._builders)

    def builders(self, config_file: str | None = None) -> list[BuildOrchestrator]:
        """All builders, or those of one config file."""
        if config_file is not None:
            return list(self._builders.get(os.path.abspath(config_file), {}).values())
        return [b for builders in self._builders.values() for b in builders.values()]

    def get(self, name: str, config_file: str | None = None) -> BuildOrchestrator:
        """Find a builder by name.

        Raises:
            BuilderNotFoundError: If no builder, or more than one, matches
        """
        matches = [b for b in self.builders(config_file) if b.name == name]
        if not matches:
            raise BuilderNotFoundError(f"No builder named '{name}'")
        if len(matches) > 1:
            files = ", ".join(b.config_file for b in matches)
            raise BuilderNotFoundError(
                f"Builder name '{name}' is ambiguous, pass config_file (one of: {files})"
            )
        return matches[0]

    def select(self, name: str | None = None, config_file: str | None = None) -> list[BuildOrchestrator]:
        """Builders for a tool call: one by name, or all when name is None or 'all'."""
        if name is None or name == "all":
            return self.builders(config_file)
        return [self.get(name, config_file)]

    # ============== Reconciliation ==============

    async def refresh(self, workspaces: list[str]) -> list[str]:
        """Discover qx.build files below workspaces and reconcile each.

        Builders of files no longer found are stopped and discarded.

        Returns:
            Config files with a valid builder set
        """
        self._workspaces = [os.path.abspath(w) for w in workspaces]
        logger.info(f"Registering workspaces: {self._workspaces}")

        found: list[str] = []
        watched: set[str] = set()
        for workspace in self._workspaces:
            files = find_build_files(workspace)
            found.extend(f for f in files if f not in found)
            watched.update(files)
            # Watched even while missing so that creating it is noticed
            watched.add(build_file_for(workspace))

        for config_file in found:
            await self.reconcile(config_file)
        for config_file in list(self._builders):
            if config_file not in found:
                await self._drop(config_file)

        self._sync_config_watchers(watched)
        logger.info(f"Builders initialized: {len(self.builders())} in {len(self._builders)} files")
        return self.config_files()

    async def reconcile(self, config_file: str) -> dict[str, BuildOrchestrator] | None:
        """Re-derive the builder set of one file and diff it by name.

        Removed names are stopped and discarded, kept names receive the new
        config, new names get fresh builders. The builder named by
        ``autostart`` is started. An invalid file leaves the previous set
        untouched and is reported as one notification.

        Returns:
            The new builder set, or None if the file is missing or invalid
        """
        config_file = os.path.abspath(config_file)
        if not os.path.isfile(config_file):
            await self._drop(config_file)
            return None

        try:
            build_file = load_build_file(config_file)
        except ConfigError as e:
            message = f"Failed to parse {config_file}: {e.message}"
            if e.key:
                message += f" (key '{e.key}')"
            self._context.notify("error", message)
            return None

        existing = self._builders.get(config_file, {})
        builders: dict[str, BuildOrchestrator] = {}
        for name, builder in existing.items():
            if name not in build_file.names():
                logger.info(f"Removing builder '{name}' from {config_file}")
                await builder.dispose()

        for config in build_file.builders:
            builder = existing.get(config.name)
            if builder is not None:
                await builder.update_config(config)
            else:
                logger.info(f"Creating builder '{config.name}' from {config_file}")
                builder = BuildOrchestrator(
                    config,
                    config_file,
                    self._context,
                    settings=self._settings,
                    watcher_factory=self._watcher_factory,
                )
            builders[config.name] = builder
        self._builders[config_file] = builders

        if build_file.autostart is not None:
            await builders[build_file.autostart].start()
        return builders

    async def _drop(self, config_file: str) -> None:
        builders = self._builders.pop(config_file, {})
        for builder in builders.values():
            await builder.dispose()
        if builders:
            logger.info(f"Dropped {len(builders)} builders of {config_file}")

    def _on_config_change(self, config_file: str, _path: str | None) -> None:
        logger.info(f"Config file changed: {config_file}")
        task = asyncio.get_running_loop().create_task(self.reconcile(config_file))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _sync_config_watchers(self, watched: set[str]) -> None:
        for config_file in list(self._config_watchers):
            if config_file not in watched:
                self._config_watchers.pop(config_file).close()
        for config_file in watched:
            if config_file in self._config_watchers:
                continue
            self._config_watchers[config_file] = self._watcher_factory(
                config_file, partial(self._on_config_change, config_file)
            )
            logger.debug(f"Created config watcher for {config_file}")

    # ============== Bulk operations ==============

    async def start_all(self, config_file: str | None = None) -> int:
        started = 0
        for builder in self.builders(config_file):
            if not builder.is_watching:
                await builder.start()
                started += 1
        return started

    async def stop_all(self, config_file: str | None = None) -> int:
        stopped = 0
        for builder in self.builders(config_file):
            if builder.is_watching or builder.is_building:
                stopped += 1
            await builder.stop()
        return stopped

    async def close(self) -> None:
        """Stop every builder and config watcher."""
        for watcher in self._config_watchers.values():
            watcher.close()
        self._config_watchers.clear()
        for config_file in list(self._builders):
            await self._drop(config_file)

    def to_dict(self) -> dict[str, Any]:
        """Registry status as dictionary."""
        return {
            "workspaces": self._workspaces,
            "configFiles": {
                config_file: [b.to_dict() for b in builders.values()]
                for config_file, builders in self._builders.items()
            },
        }
