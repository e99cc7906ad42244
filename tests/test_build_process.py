"""Tests for process tree management."""

import signal
import sys
from unittest.mock import patch

import pytest

from qxbuild_mcp.build import process
from qxbuild_mcp.build.process import kill_process_tree, spawn_options


class TestSpawnOptions:
    """Tests for spawn_options."""

    def test_posix_starts_new_session(self):
        """Test that POSIX builds lead their own session."""
        with patch.object(process.os, "name", "posix"):
            assert spawn_options() == {"start_new_session": True}


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX-only test")
class TestKillProcessTree:
    """Tests for kill_process_tree."""

    @pytest.mark.asyncio
    async def test_none_pid(self):
        """Test that a missing pid kills nothing."""
        assert await kill_process_tree(None) is False

    @pytest.mark.asyncio
    async def test_kills_process_group(self):
        """Test that the whole process group is signalled."""
        with patch.object(process.os, "name", "posix"), patch.object(
            process.os, "killpg", create=True
        ) as killpg, patch.object(process.os, "kill") as kill:
            assert await kill_process_tree(1234) is True

        killpg.assert_called_once_with(1234, signal.SIGKILL)
        kill.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_exited(self):
        """Test that a vanished group is reported as not killed."""
        with patch.object(process.os, "name", "posix"), patch.object(
            process.os, "killpg", side_effect=ProcessLookupError, create=True
        ):
            assert await kill_process_tree(1234) is False

    @pytest.mark.asyncio
    async def test_falls_back_to_leader(self):
        """Test that the leader is killed when the group cannot be."""
        with patch.object(process.os, "name", "posix"), patch.object(
            process.os, "killpg", side_effect=PermissionError, create=True
        ), patch.object(process.os, "kill") as kill:
            assert await kill_process_tree(1234) is True

        kill.assert_called_once_with(1234, signal.SIGKILL)
