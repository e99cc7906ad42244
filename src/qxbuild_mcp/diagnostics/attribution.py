"""Locate the source files of a compiled class."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from typing import Final

logger = logging.getLogger(__name__)

# Build output directories never holding the authoritative source
OUTPUT_DIRS: Final[frozenset[str]] = frozenset({"transpiled", "compiled"})

CLASS_FILE_EXTENSION: Final[str] = ".js"


def class_path_parts(classname: str) -> tuple[str, ...]:
    """``a.b.C`` -> ``("a", "b", "C.js")``."""
    parts = classname.split(".")
    return (*parts[:-1], parts[-1] + CLASS_FILE_EXTENSION)


def find_files_for_class(classname: str, source_dirs: Iterable[str]) -> list[str]:
    """Find every existing file for classname under the given source dirs.

    A file matches when its path ends with the class path segment by segment;
    build output directories are skipped.

    Args:
        classname: Dotted class name
        source_dirs: Absolute directories to search

    Returns:
        Absolute file paths, in search order, without duplicates
    """
    wanted = class_path_parts(classname)
    found: dict[str, None] = {}

    for base in source_dirs:
        if os.path.isfile(base):
            base_parts = tuple(os.path.normpath(base).split(os.sep))
            if base_parts[-len(wanted):] == wanted:
                found.setdefault(os.path.abspath(base))
            continue
        if not os.path.isdir(base):
            logger.debug(f"Source path does not exist: {base}")
            continue

        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = [d for d in dirnames if d not in OUTPUT_DIRS]
            if wanted[-1] not in filenames:
                continue
            rel_parts = tuple(os.path.relpath(dirpath, base).split(os.sep))
            if rel_parts == (".",):
                rel_parts = ()
            candidate = (*rel_parts, wanted[-1])
            if candidate[-len(wanted):] != wanted:
                continue
            path = os.path.abspath(os.path.join(dirpath, wanted[-1]))
            if os.path.exists(path):
                found.setdefault(path)

    return list(found)
