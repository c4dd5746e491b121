"""Decide which checkout files belong to the shipped code of a crate."""

from __future__ import annotations

from pathlib import PurePosixPath

RUST_SUFFIX = ".rs"

EXCLUDED_DIRS = frozenset({"examples", "target", "tests", "benches"})
"""Cargo convention directories holding build output, demos, tests and benches."""


def _parts(relative_path: str) -> tuple[str, ...]:
    return PurePosixPath(relative_path.replace("\\", "/")).parts


def is_rust_file(relative_path: str) -> bool:
    return PurePosixPath(relative_path.replace("\\", "/")).suffix == RUST_SUFFIX


def is_in_valid_dir(relative_path: str) -> bool:
    """Return False when any directory component is an excluded directory."""

    directories = _parts(relative_path)[:-1]
    return not any(part in EXCLUDED_DIRS for part in directories)


def is_valid_file(relative_path: str) -> bool:
    return is_rust_file(relative_path) and is_in_valid_dir(relative_path)
