"""Environment-driven scan configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from safety_audit.services.scan_limits import (
    DEFAULT_GIT_TIMEOUT_SECONDS,
    DEFAULT_MAX_FILE_BYTES,
    DEFAULT_UNSAFE_ATTRIBUTES,
    MAX_WORKERS_CEILING,
    ScanConfig,
)


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SAFETY_AUDIT_HOME", raising=False)
    monkeypatch.delenv("SAFETY_AUDIT_MAX_WORKERS", raising=False)

    config = ScanConfig.from_env()

    assert config.home_dir == Path(".safety_audit")
    assert 1 <= config.max_workers <= MAX_WORKERS_CEILING
    assert config.git_timeout_seconds == DEFAULT_GIT_TIMEOUT_SECONDS
    assert config.max_file_bytes == DEFAULT_MAX_FILE_BYTES
    assert config.unsafe_attributes == DEFAULT_UNSAFE_ATTRIBUTES
    assert config.default_branch is None


def test_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SAFETY_AUDIT_HOME", str(tmp_path))
    monkeypatch.setenv("SAFETY_AUDIT_MAX_WORKERS", "3")
    monkeypatch.setenv("SAFETY_AUDIT_GIT_TIMEOUT", "12")
    monkeypatch.setenv("SAFETY_AUDIT_DEFAULT_BRANCH", "main")
    monkeypatch.setenv(
        "SAFETY_AUDIT_UNSAFE_ATTRIBUTES", " no_mangle, unsafe_destructor_blind_to_params ,"
    )

    config = ScanConfig.from_env()

    assert config.home_dir == tmp_path
    assert config.max_workers == 3
    assert config.git_timeout_seconds == 12
    assert config.default_branch == "main"
    assert config.unsafe_attributes == {"no_mangle", "unsafe_destructor_blind_to_params"}


@pytest.mark.parametrize("raw", ["", "abc", "0", "-4"])
def test_invalid_integers_fall_back(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("SAFETY_AUDIT_GIT_TIMEOUT", raw)

    assert ScanConfig.from_env().git_timeout_seconds == DEFAULT_GIT_TIMEOUT_SECONDS


def test_workers_are_capped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SAFETY_AUDIT_MAX_WORKERS", "100000")

    assert ScanConfig.from_env().max_workers == MAX_WORKERS_CEILING


def test_blank_attribute_list_keeps_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SAFETY_AUDIT_UNSAFE_ATTRIBUTES", " , ")

    assert ScanConfig.from_env().unsafe_attributes == DEFAULT_UNSAFE_ATTRIBUTES
