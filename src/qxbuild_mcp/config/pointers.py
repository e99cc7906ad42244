"""Pointer expansion for the string-array fields of a builder.

Two pointer grammars may appear in any of the array fields:

- JSON pointer, ``<file>#<dot.path>``: splices the string or string array
  found at ``dot.path`` inside a JSON file (empty dot path selects the
  whole document).
- Build pointer, ``<dir>@<builder>``: splices the same field of another
  builder defined in the qx.build file inside ``dir``.

Expansion repeats until no entry matches either grammar, so pointers may
chain through any number of files.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from ..errors import ConfigError, CyclicPointerError
from ..settings import BUILD_FILE_NAME

logger = logging.getLogger(__name__)

# Fields of a builder whose entries may contain pointers
POINTER_FIELDS: tuple[str, ...] = ("compilerArgs", "preBuild", "postBuild", "sourcePaths")

PointerKey = tuple[str, str, str]


@dataclass(frozen=True)
class _Entry:
    """One pending entry with the directory its pointers resolve against."""

    value: str
    base_dir: str
    chain: frozenset[PointerKey] = frozenset()


def is_string_array(value: Any) -> bool:
    """Whether value is a list containing only strings."""
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def remove_duplicates(values: list[str]) -> list[str]:
    """Remove duplicates, keeping the first occurrence of each value."""
    return list(dict.fromkeys(values))


def is_json_pointer(entry: str) -> bool:
    """Whether entry has the ``file#dot.path`` shape."""
    return entry.count("#") == 1


def build_pointer_dir(entry: str, base_dir: str) -> str | None:
    """Return the directory a build pointer names, or None if entry is not one.

    A build pointer is valid only when its directory exists and contains a
    qx.build file; anything else is a literal value.
    """
    if entry.count("@") != 1:
        return None
    rel_dir = entry.split("@", 1)[0]
    directory = os.path.abspath(os.path.join(base_dir, rel_dir))
    if not os.path.isdir(directory):
        return None
    if not os.path.isfile(os.path.join(directory, BUILD_FILE_NAME)):
        return None
    return directory


def _read_json(path: str) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e.strerror or e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in {path}: {e}") from e


def _walk_dot_path(document: Any, dot_path: str, entry: str) -> Any:
    value = document
    if not dot_path:
        return value
    for segment in dot_path.split("."):
        if isinstance(value, dict) and segment in value:
            value = value[segment]
        elif isinstance(value, list) and segment.isdigit() and int(segment) < len(value):
            value = value[int(segment)]
        else:
            raise ConfigError(f"{entry}: '{segment}' not found")
    return value


def _expand_json_pointer(entry: _Entry) -> tuple[PointerKey, list[str]]:
    rel_path, dot_path = entry.value.split("#", 1)
    file_path = os.path.abspath(os.path.join(entry.base_dir, rel_path))
    key = ("json", file_path, dot_path)
    if key in entry.chain:
        raise CyclicPointerError(f"{entry.value}: pointer cycle through {file_path}#{dot_path}")

    value = _walk_dot_path(_read_json(file_path), dot_path, entry.value)
    if isinstance(value, str):
        return key, [value]
    if is_string_array(value):
        return key, list(value)
    raise ConfigError(f"{entry.value}: expected string or string array")


def find_builder(build_file: str, name: str) -> dict[str, Any]:
    """Find the raw (unresolved) definition of builder ``name`` in a qx.build file."""
    document = _read_json(build_file)
    builders = document.get("builders") if isinstance(document, dict) else None
    if not isinstance(builders, list):
        raise ConfigError(f"{build_file}: 'builders' must be an array")
    for builder in builders:
        if isinstance(builder, dict) and builder.get("name") == name:
            return builder
    raise ConfigError(f"builder not found: '{name}' in {build_file}")


def _expand_build_pointer(
    entry: _Entry, directory: str, field: str
) -> tuple[PointerKey, str, list[str]]:
    name = entry.value.split("@", 1)[1]
    key = ("build", directory, name)
    if key in entry.chain:
        raise CyclicPointerError(f"{entry.value}: pointer cycle through builder '{name}'")

    builder = find_builder(os.path.join(directory, BUILD_FILE_NAME), name)
    value = builder.get(field, [])
    if not is_string_array(value):
        raise ConfigError(f"{entry.value}: expected string array in '{field}'")

    # Nested pointers of the referenced builder resolve against its own workDir
    work_dir = builder.get("workDir", ".")
    if not isinstance(work_dir, str):
        raise ConfigError(f"{entry.value}: 'workDir' must be a string")
    return key, os.path.abspath(os.path.join(directory, work_dir)), list(value)


def resolve_pointers(entries: list[str], work_dir: str, field: str) -> list[str]:
    """Expand every pointer in ``entries`` until none remain.

    Args:
        entries: Raw values of one array field
        work_dir: Directory relative pointers are resolved against
        field: Logical field name, used to read the same field of
            builders named by build pointers

    Returns:
        Pointer-free values, duplicates removed, first occurrence kept

    Raises:
        ConfigError: If a pointer cannot be resolved
        CyclicPointerError: If a pointer expands into itself
    """
    pending = [_Entry(value, work_dir) for value in entries]

    while True:
        literals: list[_Entry] = []
        expanded: list[_Entry] = []
        found = False

        for entry in pending:
            if is_json_pointer(entry.value):
                found = True
                key, values = _expand_json_pointer(entry)
                chain = entry.chain | {key}
                expanded.extend(_Entry(v, entry.base_dir, chain) for v in values)
                continue

            directory = build_pointer_dir(entry.value, entry.base_dir)
            if directory is not None:
                found = True
                key, base_dir, values = _expand_build_pointer(entry, directory, field)
                chain = entry.chain | {key}
                expanded.extend(_Entry(v, base_dir, chain) for v in values)
                continue

            literals.append(entry)

        pending = literals + expanded
        if not found:
            break
        logger.debug(f"Expanded pointers in {field}: {len(pending)} entries pending")

    return remove_duplicates([entry.value for entry in pending])
