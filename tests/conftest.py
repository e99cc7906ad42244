"""Pytest fixtures for qxbuild-mcp tests."""

import json
import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from qxbuild_mcp.build.context import BuildContext  # noqa: E402


class FakeWatcher:
    """Watch handle whose changes are triggered by the test."""

    def __init__(self, target, callback):
        self.target = target
        self.callback = callback
        self.closed = False

    def close(self):
        self.closed = True

    def fire(self, path):
        self.callback(path)


class FakeWatcherFactory:
    """Records every watch created."""

    def __init__(self):
        self.watchers = []

    def __call__(self, target, callback):
        watcher = FakeWatcher(target, callback)
        self.watchers.append(watcher)
        return watcher

    def open(self):
        return [w for w in self.watchers if not w.closed]

    def for_target(self, target):
        return [w for w in self.open() if w.target == str(target)]


@pytest.fixture
def write_json():
    """Write a JSON document to a path, creating parent directories."""

    def _write(path, data):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def watcher_factory():
    return FakeWatcherFactory()


@pytest.fixture
def context():
    return BuildContext()
