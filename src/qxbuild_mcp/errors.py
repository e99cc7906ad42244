"""Exception hierarchy for qxbuild-mcp."""

from __future__ import annotations


class QxBuildError(Exception):
    """Base exception for build orchestration errors."""

    pass


class ConfigError(QxBuildError):
    """Raised when a qx.build file or one of its builders is invalid.

    Always fatal to the file being parsed. ``key`` names the builder key that
    was being processed, ``file`` the config file, when known.
    """

    def __init__(self, message: str, key: str | None = None, file: str | None = None):
        super().__init__(message)
        self.message = message
        self.key = key
        self.file = file

    def __str__(self) -> str:
        message = self.message
        if self.key:
            message = f"{self.key}: {message}"
        if self.file:
            message = f"{self.file}: {message}"
        return message


class CyclicPointerError(ConfigError):
    """Raised when a pointer expansion reaches itself again."""

    pass


class ParseError(QxBuildError):
    """Raised for compiler output lines that match no known shape.

    Never escapes a build attempt; the offending line is logged and dropped.
    """

    pass


class BuilderNotFoundError(QxBuildError, LookupError):
    """Raised when a builder name does not identify exactly one builder."""

    pass
