"""Eligibility predicate for shipped Rust sources."""

from __future__ import annotations

import pytest

from safety_audit.services.eligibility import is_in_valid_dir, is_rust_file, is_valid_file


def test_only_library_source_is_eligible() -> None:
    paths = ["src/lib.rs", "examples/demo.rs", "tests/t.rs", "benches/b.rs"]

    assert [path for path in paths if is_valid_file(path)] == ["src/lib.rs"]


@pytest.mark.parametrize(
    "path, expected",
    [
        ("src/main.rs", True),
        ("src/main.js", False),
        ("src/lib.rs.orig", False),
        ("build.rs", True),
        ("README.md", False),
    ],
)
def test_is_rust_file(path: str, expected: bool) -> None:
    assert is_rust_file(path) is expected


@pytest.mark.parametrize(
    "path, expected",
    [
        ("src/main.rs", True),
        ("benches/main.rs", False),
        ("examples/main.rs", False),
        ("tests/test.rs", False),
        ("target/debug/build/out.rs", False),
        ("crates/core/tests/it.rs", False),
        ("src/tests.rs", True),
        ("src/testsuite/mod.rs", True),
        ("src\\examples\\demo.rs", False),
    ],
)
def test_is_in_valid_dir(path: str, expected: bool) -> None:
    assert is_in_valid_dir(path) is expected
