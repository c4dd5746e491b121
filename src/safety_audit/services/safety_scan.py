"""Drive a full safety scan from a target identifier to a report."""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Callable, Iterable

from ..domain.models import SafetyReport
from .checkout import checkout_path_for, ensure_checkout, list_tracked_files
from .eligibility import is_valid_file
from .rust_parser import ParserFactory, get_configured_parser
from .scan_audit import record_scan_event
from .scan_limits import ScanConfig
from .unit_scanner import scan_checkout

_LOG = logging.getLogger(__name__)


def _parser_factory_for(config: ScanConfig) -> ParserFactory:
    return functools.partial(get_configured_parser, config.max_file_bytes)


def scan_paths(
    target_id: str,
    base_path: Path,
    relative_paths: Iterable[str],
    *,
    config: ScanConfig | None = None,
    parser_factory: ParserFactory | None = None,
    is_eligible: Callable[[str], bool] = is_valid_file,
    revision: str | None = None,
) -> SafetyReport:
    """Scan the given files of one target and build its report."""

    config = config or ScanConfig.from_env()
    outcome = scan_checkout(
        base_path,
        relative_paths,
        parser_factory=parser_factory or _parser_factory_for(config),
        is_eligible=is_eligible,
        unsafe_attributes=config.unsafe_attributes,
        max_workers=config.max_workers,
    )
    report = SafetyReport(target_id=target_id, findings=outcome.findings)
    record_scan_event(report, outcome.files_scanned, revision=revision)
    _LOG.info(
        "Safety scan of %s %s with %d offense(s)",
        target_id,
        report.status.value,
        len(report.findings),
    )
    return report


def scan_repository(
    git_url: str,
    commit: str | None = None,
    *,
    config: ScanConfig | None = None,
    parser_factory: ParserFactory | None = None,
) -> SafetyReport:
    """
    Check out ``git_url`` (optionally at ``commit``) and audit its tracked files.

    Raises:
        CheckoutError: The repository could not be cloned, refreshed or pinned.
        RustParseError: An eligible file could not be parsed.
    """

    config = config or ScanConfig.from_env()
    checkout = ensure_checkout(
        git_url, checkout_path_for(git_url, config), commit, config=config
    )
    files = list_tracked_files(checkout, config)
    return scan_paths(
        git_url,
        checkout.path,
        files,
        config=config,
        parser_factory=parser_factory,
        revision=checkout.head,
    )
