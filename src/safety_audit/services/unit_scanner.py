"""Fold the per-file findings of a checkout into one finding set."""

from __future__ import annotations

import functools
import logging
import operator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Callable, Iterable

from ..domain.models import UnsafeFinding
from .eligibility import is_valid_file
from .rust_parser import ParserFactory, get_configured_parser
from .scan_limits import DEFAULT_UNSAFE_ATTRIBUTES
from .unsafe_visitor import classify_unit

_LOG = logging.getLogger(__name__)

EMPTY_FINDINGS: frozenset[UnsafeFinding] = frozenset()


@dataclass(frozen=True)
class ScanOutcome:
    """Findings for a checkout plus how many files contributed to them."""

    findings: frozenset[UnsafeFinding]
    files_scanned: int


def union_findings(
    finding_sets: Iterable[frozenset[UnsafeFinding]],
) -> frozenset[UnsafeFinding]:
    """Reduce finding sets with union; the empty set is the identity."""

    return functools.reduce(operator.or_, finding_sets, EMPTY_FINDINGS)


def eligible_paths(
    relative_paths: Iterable[str],
    is_eligible: Callable[[str], bool] = is_valid_file,
) -> list[str]:
    """Filter and sort paths so failures are reported in a stable order."""

    return sorted({path for path in relative_paths if is_eligible(path)})


def scan_file(
    base_path: Path,
    relative_path: str,
    parser_factory: ParserFactory = get_configured_parser,
    unsafe_attributes: AbstractSet[str] = DEFAULT_UNSAFE_ATTRIBUTES,
) -> frozenset[UnsafeFinding]:
    """Parse one file with a parser of its own and classify it."""

    parser = parser_factory()
    unit = parser.parse(base_path / relative_path, relative_path)
    findings = classify_unit(unit, unsafe_attributes)
    _LOG.debug("Scanned %s: %d unsafe occurrence(s)", relative_path, len(findings))
    return findings


def scan_checkout(
    base_path: Path,
    relative_paths: Iterable[str],
    *,
    parser_factory: ParserFactory = get_configured_parser,
    is_eligible: Callable[[str], bool] = is_valid_file,
    unsafe_attributes: AbstractSet[str] = DEFAULT_UNSAFE_ATTRIBUTES,
    max_workers: int = 1,
) -> ScanOutcome:
    """
    Scan every eligible file below ``base_path``.

    Args:
        base_path: Root of the checkout the relative paths resolve against.
        relative_paths: Candidate files, in any order.
        parser_factory: Builds one parser per file so no parser is shared
            across worker threads.
        is_eligible: Predicate over a relative path.
        unsafe_attributes: Attribute names reported as ``unsafe_attr``.
        max_workers: Worker threads; ``1`` scans sequentially.

    Raises:
        RustParseError: For the first file, in sorted path order, that could
            not be parsed. No partial result is returned.
    """

    paths = eligible_paths(relative_paths, is_eligible)
    scan_one = functools.partial(
        scan_file,
        base_path,
        parser_factory=parser_factory,
        unsafe_attributes=unsafe_attributes,
    )
    if max_workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(paths))) as pool:
            # map() re-raises worker errors in input order.
            findings = union_findings(pool.map(scan_one, paths))
    else:
        findings = union_findings(map(scan_one, paths))

    _LOG.info(
        "Scanned %d file(s) under %s: %d unsafe occurrence(s)",
        len(paths),
        base_path,
        len(findings),
    )
    return ScanOutcome(findings=findings, files_scanned=len(paths))


def scan_files(
    base_path: Path,
    relative_paths: Iterable[str],
    *,
    parser_factory: ParserFactory = get_configured_parser,
    is_eligible: Callable[[str], bool] = is_valid_file,
    unsafe_attributes: AbstractSet[str] = DEFAULT_UNSAFE_ATTRIBUTES,
    max_workers: int = 1,
) -> frozenset[UnsafeFinding]:
    """Return only the finding set of :func:`scan_checkout`."""

    return scan_checkout(
        base_path,
        relative_paths,
        parser_factory=parser_factory,
        is_eligible=is_eligible,
        unsafe_attributes=unsafe_attributes,
        max_workers=max_workers,
    ).findings
