"""End-to-end runs of the ``safety-audit`` entrypoint."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import pytest

from conftest import GitOrigin
from safety_audit import cli
from safety_audit.contract import reason_codes
from safety_audit.services.audit_log import EVENT_NAME
from safety_audit.services.scan_audit import get_scan_events

UNSAFE_LIB = """\
pub mod ffi;

pub unsafe fn raw() {}
"""

FFI = """\
pub fn call() {
    unsafe {}
}
"""


def test_failed_status_is_a_successful_run(
    git_origin: GitOrigin, capsys: pytest.CaptureFixture[str]
) -> None:
    git_origin.commit(
        {
            "src/lib.rs": UNSAFE_LIB,
            "src/ffi.rs": FFI,
            "examples/demo.rs": "fn main() {\n    unsafe {}\n}\n",
        }
    )

    exit_code = cli.main([git_origin.url])

    captured = capsys.readouterr()
    assert exit_code == 0
    report = json.loads(captured.out)
    assert report["target_id"] == git_origin.url
    assert report["status"] == "failed"
    assert sorted(offense["kind"] for offense in report["offenses"]) == [
        "unsafe_block",
        "unsafe_function",
    ]
    assert all(
        offense["occurrences"].startswith("src/") for offense in report["offenses"]
    )


def test_clean_repository_passes(
    git_origin: GitOrigin, capsys: pytest.CaptureFixture[str]
) -> None:
    head = git_origin.commit({"src/lib.rs": "pub fn f() -> u8 {\n    1\n}\n"})

    exit_code = cli.main([git_origin.url])

    report = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert report == {"target_id": git_origin.url, "status": "passed", "offenses": []}
    events = get_scan_events()
    assert [event["event"] for event in events] == [EVENT_NAME]
    assert events[0]["revision"] == head
    assert events[0]["files_scanned"] == 1


def test_pinned_commit_is_scanned(
    git_origin: GitOrigin, capsys: pytest.CaptureFixture[str]
) -> None:
    clean = git_origin.commit({"src/lib.rs": "pub fn f() {}\n"}, "clean")
    git_origin.commit({"src/lib.rs": UNSAFE_LIB, "src/ffi.rs": FFI}, "unsafe")

    exit_code = cli.main([git_origin.url, clean])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)["status"] == "passed"


def test_same_named_repositories_report_their_own_code(
    git_origin_factory: Callable[[str], GitOrigin],
    capsys: pytest.CaptureFixture[str],
) -> None:
    dirty = git_origin_factory("owner-a/crate")
    clean = git_origin_factory("owner-b/crate")
    dirty.commit({"src/lib.rs": "pub unsafe fn a_only() {}\n"})
    clean.commit({"src/lib.rs": "pub fn clean() {}\n"})

    assert cli.main([dirty.url]) == 0
    assert json.loads(capsys.readouterr().out)["status"] == "failed"

    assert cli.main([clean.url]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report == {"target_id": clean.url, "status": "passed", "offenses": []}


def test_parse_failure_prints_no_report(
    git_origin: GitOrigin, capsys: pytest.CaptureFixture[str]
) -> None:
    git_origin.commit({"src/lib.rs": UNSAFE_LIB, "src/ffi.rs": "fn broken( {\n"})

    exit_code = cli.main([git_origin.url])

    captured = capsys.readouterr()
    assert exit_code == cli.EXIT_OPERATIONAL_ERROR
    assert captured.out == ""
    assert reason_codes.PARSE_FAILED in captured.err
    assert "src/ffi.rs" in captured.err
    assert get_scan_events() == []


def test_checkout_failure_prints_no_report(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = cli.main([str(tmp_path / "nowhere" / "crate")])

    captured = capsys.readouterr()
    assert exit_code == cli.EXIT_OPERATIONAL_ERROR
    assert captured.out == ""
    assert reason_codes.CHECKOUT_FAILED in captured.err


def test_unwritable_home_is_a_checkout_failure(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def fail_mkdir(self: Path, *args: object, **kwargs: object) -> None:
        raise PermissionError("read-only file system")

    monkeypatch.setattr("safety_audit.services.checkout.Path.mkdir", fail_mkdir)

    exit_code = cli.main(["https://example.invalid/crate"])

    captured = capsys.readouterr()
    assert exit_code == cli.EXIT_OPERATIONAL_ERROR
    assert captured.out == ""
    assert reason_codes.CHECKOUT_FAILED in captured.err


def test_missing_argument_is_a_usage_error(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert excinfo.value.code == 2
    assert capsys.readouterr().out == ""
