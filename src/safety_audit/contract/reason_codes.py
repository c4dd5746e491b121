"""Reason codes reported on stderr when a scan cannot produce a report."""

from __future__ import annotations

CHECKOUT_FAILED = "checkout_failed"
"""The repository could not be cloned, refreshed, pinned or listed."""

PARSE_FAILED = "parse_failed"
"""An eligible source file could not be read or parsed."""

CARGO_METADATA_FAILED = "cargo_metadata_failed"
"""``cargo metadata`` failed or produced unreadable output."""

REPORT_VALIDATION_FAILED = "report_validation_failed"
"""The scan produced output that violated the published report schema."""
