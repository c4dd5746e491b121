"""Command line entrypoints: ``safety-audit`` and ``cargo-safety``.

Stdout carries exactly one JSON document on success and nothing otherwise;
logs and error lines go to stderr. A ``failed`` safety status is a successful
run and exits 0.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Sequence

from .contract import reason_codes, schema_registry
from .contract.schema_registry import SchemaValidationError
from .services.cargo_metadata import (
    CargoMetadataError,
    load_cargo_metadata,
    scan_cargo_packages,
)
from .services.checkout import CheckoutError
from .services.rust_parser import RustParseError
from .services.safety_scan import scan_repository

_LOG = logging.getLogger(__name__)

LOG_LEVEL_ENV = "SAFETY_AUDIT_LOG_LEVEL"
EXIT_OPERATIONAL_ERROR = 1


def _configure_logging() -> None:
    level_name = os.getenv(LOG_LEVEL_ENV, "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(reason: str, detail: str) -> int:
    sys.stderr.write(f"error: {reason}: {detail}\n")
    return EXIT_OPERATIONAL_ERROR


def _emit(payload: Any) -> int:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False))
    sys.stdout.write("\n")
    return 0


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="safety-audit",
        description="Report every use of unsafe in a Rust git repository.",
        epilog=(
            "Checkouts are kept below $SAFETY_AUDIT_HOME "
            "(default: .safety_audit)."
        ),
    )
    parser.add_argument("git_url", help="URL of the git repository to audit.")
    parser.add_argument(
        "commit",
        nargs="?",
        default=None,
        help="Optional commit to pin the checkout to before scanning.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Audit one repository and print its safety report."""

    args = parse_args(argv)
    _configure_logging()
    try:
        report = scan_repository(args.git_url, args.commit)
        payload = schema_registry.validate_report(report)
    except CheckoutError as exc:
        return _fail(reason_codes.CHECKOUT_FAILED, str(exc))
    except RustParseError as exc:
        return _fail(reason_codes.PARSE_FAILED, str(exc))
    except SchemaValidationError as exc:
        return _fail(reason_codes.REPORT_VALIDATION_FAILED, exc.message)
    return _emit(payload)


def parse_cargo_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    args = list(sys.argv[1:] if argv is None else argv)
    # cargo passes the subcommand name through when run as ``cargo safety``.
    if args[:1] == ["safety"]:
        args = args[1:]
    parser = argparse.ArgumentParser(
        prog="cargo safety",
        description=(
            "Report every use of unsafe in each target of the current Cargo "
            "package and its dependencies."
        ),
    )
    parser.add_argument(
        "--manifest-path",
        type=Path,
        default=None,
        help="Path to Cargo.toml (default: discovered by cargo).",
    )
    return parser.parse_args(args)


def cargo_safety_main(argv: Sequence[str] | None = None) -> int:
    """Audit every Cargo target and print a JSON array of reports."""

    args = parse_cargo_args(argv)
    _configure_logging()
    try:
        packages = load_cargo_metadata(args.manifest_path)
        reports = scan_cargo_packages(packages)
        payload = schema_registry.validate_reports(reports)
    except CargoMetadataError as exc:
        return _fail(reason_codes.CARGO_METADATA_FAILED, str(exc))
    except RustParseError as exc:
        return _fail(reason_codes.PARSE_FAILED, str(exc))
    except SchemaValidationError as exc:
        return _fail(reason_codes.REPORT_VALIDATION_FAILED, exc.message)
    _LOG.info("Audited %d cargo target(s)", len(reports))
    return _emit(payload)


if __name__ == "__main__":
    raise SystemExit(main())
