"""Tests for the polling file system watcher."""

import os

import pytest

from qxbuild_mcp.build.watcher import PollingWatcher, diff_snapshots, take_snapshot, watch


def _bump(path, content):
    """Rewrite a file and push its mtime forward so the change is visible."""
    path.write_text(content)
    stat = os.stat(path)
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))


class TestSnapshots:
    """Tests for take_snapshot and diff_snapshots."""

    def test_snapshot_of_directory(self, tmp_path):
        """Test that files are keyed by their path relative to the target."""
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "One.js").write_text("x")
        (tmp_path / "Two.js").write_text("yy")

        snapshot = take_snapshot(str(tmp_path))

        assert sorted(snapshot) == [os.path.join("a", "One.js"), "Two.js"]
        assert snapshot["Two.js"][1] == 2

    def test_snapshot_of_file(self, tmp_path):
        """Test that a single watched file is keyed by its name."""
        path = tmp_path / "qx.build"
        path.write_text("{}")

        assert list(take_snapshot(str(path))) == ["qx.build"]

    def test_snapshot_of_missing_target(self, tmp_path):
        """Test that a missing target yields an empty snapshot."""
        assert take_snapshot(str(tmp_path / "missing")) == {}

    def test_diff_reports_created_deleted_and_modified(self):
        """Test that every kind of change is reported once."""
        old = {"kept.js": (1, 1), "changed.js": (1, 1), "deleted.js": (1, 1)}
        new = {"kept.js": (1, 1), "changed.js": (2, 1), "created.js": (1, 1)}

        assert diff_snapshots(old, new) == ["changed.js", "created.js", "deleted.js"]


class TestPollingWatcher:
    """Tests for PollingWatcher."""

    @pytest.mark.asyncio
    async def test_poll_reports_changes(self, tmp_path):
        """Test that a poll dispatches each changed path to the callback."""
        source = tmp_path / "App.js"
        source.write_text("a")
        seen = []
        watcher = PollingWatcher(str(tmp_path), seen.append, interval=60)
        watcher.start()
        try:
            _bump(source, "b")
            (tmp_path / "New.js").write_text("c")

            changed = await watcher.poll()

            assert changed == ["App.js", "New.js"]
            assert seen == ["App.js", "New.js"]
            assert await watcher.poll() == []
        finally:
            watcher.close()

    @pytest.mark.asyncio
    async def test_notices_file_created_later(self, tmp_path):
        """Test that watching a missing file reports its creation."""
        path = tmp_path / "qx.build"
        seen = []
        watcher = PollingWatcher(str(path), seen.append, interval=60)
        watcher.start()
        try:
            path.write_text("{}")
            await watcher.poll()
            assert seen == ["qx.build"]
        finally:
            watcher.close()

    @pytest.mark.asyncio
    async def test_callback_errors_are_contained(self, tmp_path):
        """Test that a failing callback does not stop dispatch."""
        (tmp_path / "One.js").write_text("1")
        (tmp_path / "Two.js").write_text("2")
        seen = []

        def callback(path):
            seen.append(path)
            raise RuntimeError("boom")

        watcher = PollingWatcher(str(tmp_path), callback, interval=60)
        try:
            assert await watcher.poll() == ["One.js", "Two.js"]
            assert seen == ["One.js", "Two.js"]
        finally:
            watcher.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, tmp_path):
        """Test that closing twice is safe."""
        watcher = watch(str(tmp_path), lambda path: None, interval=60)

        watcher.close()
        watcher.close()

        assert watcher.closed
