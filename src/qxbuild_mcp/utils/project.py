"""Workspace and qx.build discovery utilities.

Workspace roots come from, in priority order:
1. MCP Roots from client (via Context.list_roots())
2. Environment variable QXBUILD_WORKSPACES (os.pathsep separated)
3. Explicit --workspace flags
4. Startup CWD (searched upward for qx.build when --project-from-cwd is used)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Final
from urllib.parse import unquote, urlparse

from ..settings import BUILD_FILE_NAME

if TYPE_CHECKING:
    from mcp.server.fastmcp import Context

logger = logging.getLogger(__name__)

WORKSPACES_ENV_VAR: Final[str] = "QXBUILD_WORKSPACES"

# Directories never searched for nested project roots
SKIP_DIRS: Final[frozenset[str]] = frozenset(
    {"node_modules", "compiled", "transpiled", "__pycache__"}
)

MAX_SEARCH_DEPTH: int = 4


@dataclass
class WorkspaceConfig:
    """Settings that affect how workspace roots are determined."""

    startup_cwd: Path | None = None
    """CWD captured at server startup."""

    use_project_from_cwd: bool = False
    """Whether --project-from-cwd flag was provided."""

    explicit_workspaces: list[Path] = field(default_factory=list)
    """Paths from --workspace flags."""


_config: WorkspaceConfig = WorkspaceConfig()


def configure_workspaces(
    *,
    workspaces: list[str] | None = None,
    use_project_from_cwd: bool = False,
    startup_cwd: str | Path | None = None,
) -> None:
    """Configure workspace detection. Called once at server startup."""
    global _config
    _config = WorkspaceConfig(
        startup_cwd=Path(startup_cwd) if startup_cwd else None,
        use_project_from_cwd=use_project_from_cwd,
        explicit_workspaces=[Path(w) for w in workspaces or []],
    )
    logger.debug(f"Workspaces configured: {_config}")


def get_config() -> WorkspaceConfig:
    """Get current workspace configuration."""
    return _config


def parse_file_uri(uri: str) -> Path | None:
    """Parse a file:// URI to an absolute Path, or None."""
    try:
        parsed = urlparse(str(uri))
        if parsed.scheme != "file":
            logger.warning(f"Not a file URI: {uri}")
            return None

        path_str = unquote(parsed.path)
        if sys.platform == "win32":
            # file:///C:/path -> "/C:/path"
            if path_str.startswith("/") and len(path_str) > 2 and path_str[2] == ":":
                path_str = path_str[1:]
            if parsed.netloc:
                path_str = f"\\\\{parsed.netloc}{path_str}"

        path = Path(path_str)
        if not path.is_absolute():
            logger.warning(f"Parsed path is not absolute: {path}")
            return None
        return path
    except ValueError as e:
        logger.warning(f"Failed to parse file URI '{uri}': {e}")
        return None


def find_project_root(start_dir: Path | None = None) -> Path:
    """Walk up from start_dir to the nearest directory holding a qx.build file.

    Falls back to the nearest .git root, then to start_dir itself.
    """
    current = (start_dir or Path.cwd()).resolve()

    def ancestors() -> Iterator[Path]:
        yield current
        yield from current.parents

    for directory in ancestors():
        if (directory / BUILD_FILE_NAME).is_file():
            return directory
    for directory in ancestors():
        if (directory / ".git").exists():
            return directory
    return current


def find_build_files(workspace: str, max_depth: int = MAX_SEARCH_DEPTH) -> list[str]:
    """Find the qx.build files belonging to a workspace.

    The workspace's own qx.build wins. Without one, nested project roots are
    searched (breadth first, hidden and build output directories skipped);
    the search does not descend below a directory that has a qx.build.
    """
    root = os.path.abspath(workspace)
    top = os.path.join(root, BUILD_FILE_NAME)
    if os.path.isfile(top):
        return [top]
    if not os.path.isdir(root):
        return []

    found: list[str] = []
    level = [root]
    for _depth in range(max_depth):
        next_level: list[str] = []
        for directory in level:
            try:
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            except OSError:
                continue
            for entry in entries:
                if not entry.is_dir(follow_symlinks=False):
                    continue
                if entry.name.startswith(".") or entry.name in SKIP_DIRS:
                    continue
                candidate = os.path.join(entry.path, BUILD_FILE_NAME)
                if os.path.isfile(candidate):
                    found.append(candidate)
                else:
                    next_level.append(entry.path)
        level = next_level
        if not level:
            break
    return found


async def get_workspace_roots(ctx: Context | None = None) -> list[Path]:
    """Determine the workspace roots from available sources.

    Args:
        ctx: MCP Context for accessing client-provided roots.
             Can be None if called outside of tool context.

    Returns:
        Existing workspace directories, possibly empty
    """
    if ctx is not None:
        try:
            roots = await ctx.list_roots()
            paths = []
            for root in roots or []:
                path = parse_file_uri(str(root.uri))
                if path and path.is_dir():
                    paths.append(path)
                else:
                    logger.warning(f"MCP root path invalid or not accessible: {root.uri}")
            if paths:
                logger.info(f"Using workspaces from MCP client: {paths}")
                return paths
        except Exception as e:
            # Client may not support roots
            logger.info(f"Could not get roots from client: {e}")

    return get_workspace_roots_sync()


def get_workspace_roots_sync() -> list[Path]:
    """Workspace roots without MCP client roots (e.g. at startup)."""
    config = get_config()

    env_value = os.environ.get(WORKSPACES_ENV_VAR)
    if env_value:
        paths = [Path(p) for p in env_value.split(os.pathsep) if p]
        existing = [p for p in paths if p.is_dir()]
        if existing:
            return existing
        logger.warning(f"{WORKSPACES_ENV_VAR}={env_value} - no existing directories")

    explicit = [p for p in config.explicit_workspaces if p.is_dir()]
    if explicit:
        return explicit

    if config.use_project_from_cwd and config.startup_cwd:
        return [find_project_root(config.startup_cwd)]
    if config.startup_cwd:
        return [config.startup_cwd]
    return []
