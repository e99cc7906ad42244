"""Validation and normalization of qx.build files."""

from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Final

from ..errors import ConfigError
from ..settings import BUILD_FILE_NAME
from .pointers import POINTER_FIELDS, is_string_array, remove_duplicates, resolve_pointers

logger = logging.getLogger(__name__)

ALLOWED_KEYS: Final[tuple[str, ...]] = ("name", "workDir", *POINTER_FIELDS)

# Watching is owned by the orchestrator, never by the wrapped compiler
WATCH_FLAGS: Final[frozenset[str]] = frozenset({"--watch", "-w"})

SCHEMA_URL: Final[str] = (
    "https://raw.githubusercontent.com/zenesisUK/qx-build-vscode/refs/heads/main/src/qx.build.schema.json"
)


def build_file_for(directory: str) -> str:
    """Path of the qx.build file inside directory."""
    return os.path.join(directory, BUILD_FILE_NAME)


def _clean_compiler_args(args: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    cleaned = (arg.strip() for arg in args)
    return tuple(arg for arg in cleaned if arg and arg not in WATCH_FLAGS)


@dataclass(frozen=True)
class BuilderConfig:
    """Fully resolved description of one build pipeline."""

    name: str
    work_dir: str
    compiler_args: tuple[str, ...] = ()
    pre_build: tuple[str, ...] = ()
    post_build: tuple[str, ...] = ()
    source_paths: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "compiler_args", _clean_compiler_args(self.compiler_args))
        object.__setattr__(self, "pre_build", tuple(self.pre_build))
        object.__setattr__(self, "post_build", tuple(self.post_build))
        object.__setattr__(self, "source_paths", tuple(self.source_paths))

    def watch_targets(self) -> list[str]:
        """Source paths resolved against the working directory."""
        return [os.path.abspath(os.path.join(self.work_dir, p)) for p in self.source_paths]

    def same_as(self, other: BuilderConfig | None) -> bool:
        """Compare field by field, arrays by their joined contents."""
        if other is None:
            return False
        return (
            self.name == other.name
            and self.work_dir == other.work_dir
            and " ".join(self.compiler_args) == " ".join(other.compiler_args)
            and " ".join(self.pre_build) == " ".join(other.pre_build)
            and " ".join(self.post_build) == " ".join(other.post_build)
            and " ".join(self.source_paths) == " ".join(other.source_paths)
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the qx.build JSON shape."""
        return {
            "name": self.name,
            "workDir": self.work_dir,
            "compilerArgs": list(self.compiler_args),
            "preBuild": list(self.pre_build),
            "postBuild": list(self.post_build),
            "sourcePaths": list(self.source_paths),
        }


@dataclass
class BuildFile:
    """Parsed qx.build file."""

    path: str
    builders: list[BuilderConfig] = field(default_factory=list)
    autostart: str | None = None

    @property
    def directory(self) -> str:
        return os.path.dirname(self.path)

    def names(self) -> list[str]:
        return [builder.name for builder in self.builders]


def generate_name() -> str:
    """Short random builder name."""
    return uuid.uuid4().hex[:8]


def validate_builder(data: Any, config_dir: str) -> BuilderConfig:
    """Validate one raw builder record and resolve its pointers.

    Args:
        data: Parsed JSON object from the ``builders`` array
        config_dir: Directory containing the qx.build file

    Returns:
        Canonical builder configuration

    Raises:
        ConfigError: With ``key`` set to the offending key
    """
    if not isinstance(data, dict):
        raise ConfigError("builder definition must be an object")

    for key in data:
        if key == "$schema":
            continue
        if key not in ALLOWED_KEYS:
            allowed = ", ".join(f"'{k}'" for k in ALLOWED_KEYS)
            raise ConfigError(f"unknown key, expected only: {allowed}", key=key)

    current_key = "name"
    try:
        name = data.get("name", generate_name())
        if not isinstance(name, str):
            raise ConfigError("must be a string")

        current_key = "workDir"
        work_dir = data.get("workDir", config_dir)
        if not isinstance(work_dir, str):
            raise ConfigError("must be a string")
        work_dir = os.path.abspath(os.path.join(config_dir, work_dir))

        resolved: dict[str, list[str]] = {}
        for current_key in POINTER_FIELDS:
            value = data.get(current_key, [])
            if not is_string_array(value):
                raise ConfigError("must be an array of strings")
            resolved[current_key] = remove_duplicates(
                resolve_pointers(list(value), work_dir, current_key)
            )
    except ConfigError as e:
        raise ConfigError(e.message, key=e.key or current_key) from e
    except Exception as e:
        raise ConfigError(str(e), key=current_key) from e

    return BuilderConfig(
        name=name,
        work_dir=work_dir,
        compiler_args=tuple(resolved["compilerArgs"]),
        pre_build=tuple(resolved["preBuild"]),
        post_build=tuple(resolved["postBuild"]),
        source_paths=tuple(resolved["sourcePaths"]),
    )


def parse_build_file(document: Any, path: str) -> BuildFile:
    """Validate a parsed qx.build document. All builders or none."""
    config_dir = os.path.dirname(os.path.abspath(path))
    try:
        if not isinstance(document, dict):
            raise ConfigError("file must contain an object")
        if "builders" not in document:
            raise ConfigError("'builders' is missing")
        if not isinstance(document["builders"], list):
            raise ConfigError("'builders' must be an array")

        builders: list[BuilderConfig] = []
        for raw in document["builders"]:
            builder = validate_builder(raw, config_dir)
            if any(existing.name == builder.name for existing in builders):
                raise ConfigError(f"duplicate builder name '{builder.name}'", key="name")
            builders.append(builder)

        autostart = document.get("autostart")
        if autostart is not None:
            if not isinstance(autostart, str):
                raise ConfigError("'autostart' must be a string")
            if autostart not in (b.name for b in builders):
                raise ConfigError(f"'autostart' names unknown builder '{autostart}'")
    except ConfigError as e:
        raise ConfigError(e.message, key=e.key, file=path) from e

    return BuildFile(path=path, builders=builders, autostart=autostart)


def load_build_file(path: str) -> BuildFile:
    """Read and validate one qx.build file.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read file: {e.strerror or e}", file=path) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON: {e}", file=path) from e

    build_file = parse_build_file(document, path)
    logger.debug(f"Loaded {path}: builders={build_file.names()}")
    return build_file


def sample_build_file() -> dict[str, Any]:
    """Example qx.build document."""
    return {
        "$schema": SCHEMA_URL,
        "autostart": "My Qooxdoo App",
        "builders": [
            {
                "name": "My Qooxdoo App",
                "workDir": ".",
                "compilerArgs": ["-T"],
                "preBuild": ['echo "I\'m a preBuild command"'],
                "postBuild": ['echo "I\'m a postBuild command"'],
                "sourcePaths": ["compile.json#libraries"],
            }
        ],
    }
