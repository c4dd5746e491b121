"""Audit events for completed safety scans."""

from __future__ import annotations

from dataclasses import dataclass
from typing import MutableSequence, Protocol

from ..domain.models import SafetyReport
from .audit_log import ScanRecord, get_scan_history

_EVENTS: MutableSequence[dict[str, object]] = []


class ScanAuditSink(Protocol):
    """Protocol describing a scan audit sink."""

    def emit(self, record: ScanRecord) -> None:  # pragma: no cover - trivial
        ...


@dataclass
class InMemoryScanAuditSink:
    """Sink that keeps event mappings in a list."""

    events: MutableSequence[dict[str, object]]

    def emit(self, record: ScanRecord) -> None:
        self.events.append(record.to_mapping())


class HistoryScanAuditSink:
    """Sink that appends records to the on-disk scan history."""

    __slots__ = ()

    def emit(self, record: ScanRecord) -> None:
        get_scan_history().append(record)


_IN_MEMORY_SINK = InMemoryScanAuditSink(events=_EVENTS)
_DEFAULT_PRODUCTION_SINK: ScanAuditSink = HistoryScanAuditSink()
_PRODUCTION_SINK: ScanAuditSink | None = _DEFAULT_PRODUCTION_SINK


def set_production_scan_audit_sink(sink: ScanAuditSink | None) -> None:
    """Override the production audit sink (None disables it)."""

    global _PRODUCTION_SINK
    _PRODUCTION_SINK = sink


def reset_production_scan_audit_sink() -> None:
    set_production_scan_audit_sink(_DEFAULT_PRODUCTION_SINK)


def record_scan_event(
    report: SafetyReport,
    files_scanned: int,
    revision: str | None = None,
) -> ScanRecord:
    """Record the outcome of one scan without the offense locations."""

    record = ScanRecord.from_report(report, files_scanned, revision)
    _IN_MEMORY_SINK.emit(record)
    if _PRODUCTION_SINK is not None:
        _PRODUCTION_SINK.emit(record)
    return record


def get_scan_events() -> list[dict[str, object]]:
    """Return a snapshot of recorded scan events."""

    return list(_EVENTS)


def clear_scan_events() -> None:
    _EVENTS.clear()
