"""Tests for CLI entry point - argument parsing and logging setup."""

import logging

from qxbuild_mcp.__main__ import configure_logging, parse_args


class TestParseArgs:
    """Tests for parse_args function."""

    def test_defaults(self):
        """Test that no flags means no explicit workspace."""
        args = parse_args([])
        assert args.workspace == []
        assert args.project_from_cwd is False
        assert args.compiler is None

    def test_repeated_workspace(self, tmp_path):
        """Test that --workspace may be given more than once."""
        args = parse_args(["--workspace", str(tmp_path / "a"), "--workspace", str(tmp_path / "b")])
        assert args.workspace == [str(tmp_path / "a"), str(tmp_path / "b")]

    def test_project_from_cwd(self):
        """Test the --project-from-cwd flag."""
        assert parse_args(["--project-from-cwd"]).project_from_cwd is True

    def test_compiler_override(self):
        """Test that --compiler takes a whole command line."""
        args = parse_args(["--compiler", "npx qx compile"])
        assert args.compiler == "npx qx compile"


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_level_from_environment(self, monkeypatch):
        """Test that LOG_LEVEL selects the root logger level."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        root = logging.getLogger()
        saved_level, saved_handlers = root.level, root.handlers[:]
        root.handlers = []
        try:
            configure_logging()
            assert root.level == logging.DEBUG
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        """Test that an unknown LOG_LEVEL does not break startup."""
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        root = logging.getLogger()
        saved_level, saved_handlers = root.level, root.handlers[:]
        root.handlers = []
        try:
            configure_logging()
            assert root.level == logging.INFO
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
