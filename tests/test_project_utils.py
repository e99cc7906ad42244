"""Tests for workspace and qx.build discovery utilities."""

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from qxbuild_mcp.utils.project import (
    WORKSPACES_ENV_VAR,
    WorkspaceConfig,
    configure_workspaces,
    find_build_files,
    find_project_root,
    get_config,
    get_workspace_roots,
    get_workspace_roots_sync,
    parse_file_uri,
)


@pytest.fixture(autouse=True)
def reset_workspaces(monkeypatch):
    """Start every test without workspace configuration."""
    monkeypatch.delenv(WORKSPACES_ENV_VAR, raising=False)
    configure_workspaces()
    yield
    configure_workspaces()


class TestParseFileUri:
    """Tests for parse_file_uri function."""

    def test_parse_unix_path(self):
        """Test parsing Unix file:// URI."""
        result = parse_file_uri("file:///home/user/project")
        if sys.platform != "win32":
            assert result == Path("/home/user/project")

    def test_parse_url_encoded_path(self):
        """Test parsing URL-encoded paths."""
        result = parse_file_uri("file:///home/user/my%20project")
        if sys.platform != "win32":
            assert result == Path("/home/user/my project")

    def test_parse_non_file_uri_returns_none(self):
        """Test that non-file:// URIs return None."""
        assert parse_file_uri("http://example.com") is None
        assert parse_file_uri("not a uri") is None

    @pytest.mark.skipif(sys.platform != "win32", reason="Windows-only test")
    def test_parse_windows_path(self):
        """Test parsing Windows file:// URI with drive letter."""
        assert parse_file_uri("file:///C:/Users/project") == Path("C:/Users/project")


class TestFindProjectRoot:
    """Tests for find_project_root function."""

    def test_finds_build_file_upward(self, tmp_path):
        """Test that the nearest qx.build is found from a subdirectory."""
        (tmp_path / "qx.build").write_text('{"builders": []}')
        subdir = tmp_path / "source" / "class"
        subdir.mkdir(parents=True)

        assert find_project_root(subdir) == tmp_path.resolve()

    def test_prefers_build_file_over_git(self, tmp_path):
        """Test that qx.build beats a closer .git directory."""
        (tmp_path / "qx.build").write_text('{"builders": []}')
        repo = tmp_path / "repo"
        (repo / ".git").mkdir(parents=True)

        assert find_project_root(repo) == tmp_path.resolve()

    def test_finds_git_when_no_build_file(self, tmp_path):
        """Test that .git is used when no qx.build exists."""
        (tmp_path / ".git").mkdir()
        subdir = tmp_path / "src"
        subdir.mkdir()

        assert find_project_root(subdir) == tmp_path.resolve()


class TestFindBuildFiles:
    """Tests for find_build_files function."""

    def test_top_level_file_wins(self, tmp_path):
        """Test that a workspace's own qx.build hides nested ones."""
        (tmp_path / "qx.build").write_text("{}")
        (tmp_path / "app").mkdir()
        (tmp_path / "app" / "qx.build").write_text("{}")

        assert find_build_files(str(tmp_path)) == [str(tmp_path / "qx.build")]

    def test_finds_nested_roots(self, tmp_path):
        """Test breadth-first search for nested project roots."""
        for name in ("b", "a"):
            (tmp_path / name).mkdir()
            (tmp_path / name / "qx.build").write_text("{}")
        deep = tmp_path / "c" / "d"
        deep.mkdir(parents=True)
        (deep / "qx.build").write_text("{}")

        assert find_build_files(str(tmp_path)) == [
            str(tmp_path / "a" / "qx.build"),
            str(tmp_path / "b" / "qx.build"),
            str(deep / "qx.build"),
        ]

    def test_does_not_descend_below_a_root(self, tmp_path):
        """Test that a nested root hides the roots below it."""
        (tmp_path / "app").mkdir()
        (tmp_path / "app" / "qx.build").write_text("{}")
        (tmp_path / "app" / "lib").mkdir()
        (tmp_path / "app" / "lib" / "qx.build").write_text("{}")

        assert find_build_files(str(tmp_path)) == [str(tmp_path / "app" / "qx.build")]

    def test_skips_hidden_and_output_dirs(self, tmp_path):
        """Test that hidden, node_modules and compiled dirs are not searched."""
        for name in (".cache", "node_modules", "compiled"):
            (tmp_path / name).mkdir()
            (tmp_path / name / "qx.build").write_text("{}")

        assert find_build_files(str(tmp_path)) == []

    def test_respects_max_depth(self, tmp_path):
        """Test that roots deeper than max_depth are not found."""
        deep = tmp_path / "a" / "b" / "c"
        deep.mkdir(parents=True)
        (deep / "qx.build").write_text("{}")

        assert find_build_files(str(tmp_path), max_depth=2) == []
        assert find_build_files(str(tmp_path), max_depth=3) == [str(deep / "qx.build")]

    def test_missing_workspace(self, tmp_path):
        """Test that a missing workspace yields nothing."""
        assert find_build_files(str(tmp_path / "missing")) == []


class TestWorkspaceConfig:
    """Tests for WorkspaceConfig dataclass."""

    def test_default_config(self):
        """Test default configuration values."""
        config = WorkspaceConfig()
        assert config.startup_cwd is None
        assert config.use_project_from_cwd is False
        assert config.explicit_workspaces == []

    def test_configure_workspaces(self, tmp_path):
        """Test configure_workspaces sets global config."""
        configure_workspaces(
            workspaces=[str(tmp_path)],
            use_project_from_cwd=True,
            startup_cwd=str(tmp_path),
        )

        config = get_config()
        assert config.use_project_from_cwd is True
        assert config.explicit_workspaces == [tmp_path]
        assert config.startup_cwd == tmp_path


class TestGetWorkspaceRootsSync:
    """Tests for get_workspace_roots_sync function."""

    def test_returns_empty_when_no_config(self):
        """Test returns no roots when nothing configured."""
        assert get_workspace_roots_sync() == []

    def test_returns_explicit_workspaces(self, tmp_path):
        """Test returns existing --workspace paths only."""
        configure_workspaces(workspaces=[str(tmp_path), str(tmp_path / "missing")])
        assert get_workspace_roots_sync() == [tmp_path]

    def test_project_from_cwd_searches_upward(self, tmp_path):
        """Test returns the qx.build root when --project-from-cwd."""
        (tmp_path / "qx.build").write_text('{"builders": []}')
        subdir = tmp_path / "source"
        subdir.mkdir()

        configure_workspaces(use_project_from_cwd=True, startup_cwd=str(subdir))

        assert get_workspace_roots_sync() == [tmp_path.resolve()]

    def test_env_var_takes_precedence(self, tmp_path, monkeypatch):
        """Test environment variable takes precedence over explicit paths."""
        first = tmp_path / "one"
        second = tmp_path / "two"
        first.mkdir()
        second.mkdir()
        monkeypatch.setenv(WORKSPACES_ENV_VAR, f"{first}{os.pathsep}{second}")

        configure_workspaces(workspaces=[str(tmp_path)])

        assert get_workspace_roots_sync() == [first, second]


class TestGetWorkspaceRoots:
    """Tests for async get_workspace_roots function."""

    @pytest.mark.asyncio
    async def test_uses_mcp_roots_when_available(self, tmp_path):
        """Test uses every valid MCP root the client provides."""
        first = tmp_path / "a"
        second = tmp_path / "b"
        first.mkdir()
        second.mkdir()
        roots = [MagicMock(uri=p.as_uri()) for p in (first, second, tmp_path / "gone")]

        ctx = MagicMock()
        ctx.list_roots = AsyncMock(return_value=roots)

        assert await get_workspace_roots(ctx) == [first, second]

    @pytest.mark.asyncio
    async def test_falls_back_when_roots_unsupported(self, tmp_path):
        """Test falls back to configured workspaces when MCP roots fail."""
        configure_workspaces(workspaces=[str(tmp_path)])

        ctx = MagicMock()
        ctx.list_roots = AsyncMock(side_effect=Exception("Not supported"))

        assert await get_workspace_roots(ctx) == [tmp_path]

    @pytest.mark.asyncio
    async def test_works_without_context(self, tmp_path):
        """Test works when called without context."""
        configure_workspaces(startup_cwd=str(tmp_path))

        assert await get_workspace_roots(None) == [tmp_path]
