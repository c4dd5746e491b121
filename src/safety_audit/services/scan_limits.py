"""Configurable settings for repository safety scans."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

HOME_ENV = "SAFETY_AUDIT_HOME"
"""Writable directory that holds checkouts (and the audit log by default)."""

DEFAULT_HOME_DIR = ".safety_audit"

DEFAULT_GIT_TIMEOUT_SECONDS = 300
"""Upper bound for any single git invocation."""

DEFAULT_MAX_FILE_BYTES = 4 * 1024 * 1024
"""Source files above this size are refused rather than parsed."""

MAX_WORKERS_CEILING = 64

DEFAULT_UNSAFE_ATTRIBUTES = frozenset({"unsafe_destructor_blind_to_params"})
"""Word-form attributes that opt out of a compiler safety check."""


def _env_int(
    name: str,
    default: int,
    *,
    min_value: int = 0,
    max_value: int | None = None,
) -> int:
    """Return a bounded integer setting sourced from the environment."""

    raw = os.getenv(name)
    if not raw or not raw.strip():
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    if parsed < min_value:
        return default
    if max_value is not None and parsed > max_value:
        return max_value
    return parsed


def _env_names(name: str, default: frozenset[str]) -> frozenset[str]:
    """Parse a comma separated list of identifiers."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    names = frozenset(part.strip() for part in raw.split(",") if part.strip())
    return names or default


def _default_workers() -> int:
    return min(os.cpu_count() or 1, MAX_WORKERS_CEILING)


@dataclass(frozen=True)
class ScanConfig:
    """Container describing every configurable scan setting."""

    home_dir: Path
    max_workers: int
    git_timeout_seconds: int
    max_file_bytes: int
    unsafe_attributes: frozenset[str]
    default_branch: str | None = None

    @classmethod
    def from_env(cls) -> "ScanConfig":
        """Return a config using the current environment."""

        branch = os.getenv("SAFETY_AUDIT_DEFAULT_BRANCH", "").strip()
        return cls(
            home_dir=Path(os.getenv(HOME_ENV) or DEFAULT_HOME_DIR),
            max_workers=_env_int(
                "SAFETY_AUDIT_MAX_WORKERS",
                _default_workers(),
                min_value=1,
                max_value=MAX_WORKERS_CEILING,
            ),
            git_timeout_seconds=_env_int(
                "SAFETY_AUDIT_GIT_TIMEOUT",
                DEFAULT_GIT_TIMEOUT_SECONDS,
                min_value=1,
            ),
            max_file_bytes=_env_int(
                "SAFETY_AUDIT_MAX_FILE_BYTES",
                DEFAULT_MAX_FILE_BYTES,
                min_value=1,
            ),
            unsafe_attributes=_env_names(
                "SAFETY_AUDIT_UNSAFE_ATTRIBUTES", DEFAULT_UNSAFE_ATTRIBUTES
            ),
            default_branch=branch or None,
        )
