"""Shared test fixtures for safety-audit tests."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generator

import pytest

from safety_audit.services.audit_log import (
    ScanHistory,
    reset_scan_history,
    set_scan_history,
)
from safety_audit.services.rust_parser import SourceUnit, TreeSitterRustParser
from safety_audit.services.scan_audit import (
    clear_scan_events,
    reset_production_scan_audit_sink,
)

GIT_AVAILABLE = shutil.which("git") is not None
requires_git = pytest.mark.skipif(not GIT_AVAILABLE, reason="git CLI not installed")


@pytest.fixture(autouse=True)
def isolated_state(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Keep checkouts, audit files and recorded events inside the test dir."""

    monkeypatch.setenv("SAFETY_AUDIT_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("SAFETY_AUDIT_MAX_WORKERS", "1")
    for name in (
        "SAFETY_AUDIT_UNSAFE_ATTRIBUTES",
        "SAFETY_AUDIT_DEFAULT_BRANCH",
        "SAFETY_AUDIT_MAX_FILE_BYTES",
        "SAFETY_AUDIT_GIT_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    set_scan_history(ScanHistory(path=tmp_path / "audit" / "scans.jsonl", max_bytes=None))
    clear_scan_events()
    yield
    clear_scan_events()
    reset_production_scan_audit_sink()
    reset_scan_history()


@pytest.fixture
def parse_rust() -> Callable[..., SourceUnit]:
    """Parse Rust text into a source unit displayed as ``src/lib.rs``."""

    parser = TreeSitterRustParser()

    def _parse(source: str, display_path: str = "src/lib.rs") -> SourceUnit:
        return parser.parse_bytes(source.encode("utf-8"), display_path)

    return _parse


def write_tree(root: Path, files: dict[str, str]) -> None:
    """Write ``{relative_path: text}`` below ``root``."""

    for relative, text in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Safety Audit Tests",
            "-c",
            "user.email=tests@example.invalid",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@dataclass
class GitOrigin:
    """A local repository that plays the remote in checkout tests."""

    path: Path

    @property
    def url(self) -> str:
        return str(self.path)

    def commit(self, files: dict[str, str], message: str = "update") -> str:
        write_tree(self.path, files)
        _git(self.path, "add", "--all")
        _git(self.path, "commit", "--quiet", "-m", message)
        return _git(self.path, "rev-parse", "HEAD")


@pytest.fixture
def git_origin_factory(tmp_path: Path) -> Callable[[str], GitOrigin]:
    """Create empty origins below ``remote/``, e.g. ``owner-a/crate``."""

    if not GIT_AVAILABLE:
        pytest.skip("git CLI not installed")

    def _make(relative: str) -> GitOrigin:
        path = tmp_path / "remote" / relative
        path.mkdir(parents=True)
        _git(path, "init", "--quiet")
        return GitOrigin(path=path)

    return _make


@pytest.fixture
def git_origin(git_origin_factory: Callable[[str], GitOrigin]) -> GitOrigin:
    """An origin repository named ``crate`` with no commits yet."""

    return git_origin_factory("crate")
