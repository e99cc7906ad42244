"""Utility modules for qxbuild-mcp."""

from .project import (
    WorkspaceConfig,
    configure_workspaces,
    find_build_files,
    find_project_root,
    get_workspace_roots,
    parse_file_uri,
)

__all__ = [
    "WorkspaceConfig",
    "configure_workspaces",
    "find_build_files",
    "find_project_root",
    "get_workspace_roots",
    "parse_file_uri",
]
