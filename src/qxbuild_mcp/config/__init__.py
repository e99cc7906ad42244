"""Builder configuration: qx.build parsing, validation and pointer expansion."""

from .pointers import resolve_pointers
from .validate import (
    BuildFile,
    BuilderConfig,
    build_file_for,
    load_build_file,
    parse_build_file,
    sample_build_file,
    validate_builder,
)

__all__ = [
    "BuilderConfig",
    "BuildFile",
    "build_file_for",
    "load_build_file",
    "parse_build_file",
    "resolve_pointers",
    "sample_build_file",
    "validate_builder",
]
