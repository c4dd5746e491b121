"""History of completed safety scans, one JSON line per scan.

Records carry the per-kind counts of a report but never offense locations.
Writing is best effort: a history that cannot be written is logged and the
scan result is still returned.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping

from ..domain.models import SafetyReport
from .scan_limits import DEFAULT_HOME_DIR, HOME_ENV

_LOG = logging.getLogger(__name__)

EVENT_NAME = "SAFETY_SCAN_COMPLETED"
HISTORY_FILE_NAME = "scans.jsonl"
DEFAULT_MAX_HISTORY_BYTES = 1_000_000
AUDIT_DIR_ENV = "SAFETY_AUDIT_AUDIT_DIR"
AUDIT_MAX_BYTES_ENV = "SAFETY_AUDIT_AUDIT_MAX_BYTES"


@dataclass(frozen=True)
class ScanRecord:
    """Summary of one scan of one target."""

    target_id: str
    status: str
    offense_count: int
    counts_by_kind: Mapping[str, int]
    files_scanned: int
    revision: str | None = None

    @classmethod
    def from_report(
        cls,
        report: SafetyReport,
        files_scanned: int,
        revision: str | None = None,
    ) -> "ScanRecord":
        return cls(
            target_id=report.target_id,
            status=report.status.value,
            offense_count=len(report.findings),
            counts_by_kind=report.counts_by_kind(),
            files_scanned=files_scanned,
            revision=revision or None,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "ScanRecord":
        if data.get("event") != EVENT_NAME:
            raise ValueError(f"not a scan record: {data.get('event')!r}")
        counts = data.get("counts_by_kind") or {}
        if not isinstance(counts, Mapping):
            raise TypeError("counts_by_kind must be an object")
        revision = data.get("revision")
        return cls(
            target_id=str(data["target_id"]),
            status=str(data["status"]),
            offense_count=int(data["offense_count"]),  # type: ignore[arg-type]
            counts_by_kind={str(k): int(v) for k, v in counts.items()},
            files_scanned=int(data["files_scanned"]),  # type: ignore[arg-type]
            revision=str(revision) if revision else None,
        )

    def to_mapping(self) -> dict[str, object]:
        entry: dict[str, object] = {
            "event": EVENT_NAME,
            "target_id": self.target_id,
            "status": self.status,
            "offense_count": self.offense_count,
            "counts_by_kind": dict(self.counts_by_kind),
            "files_scanned": self.files_scanned,
        }
        if self.revision:
            entry["revision"] = self.revision
        return entry


def _parse_max_bytes(raw: str | None) -> int | None:
    if not raw or not raw.strip():
        return DEFAULT_MAX_HISTORY_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return DEFAULT_MAX_HISTORY_BYTES
    return parsed if parsed > 0 else None


@dataclass
class ScanHistory:
    """Append-only JSONL file of scan records with one rotated backup.

    ``max_bytes`` of ``None`` disables rotation.
    """

    path: Path
    max_bytes: int | None = DEFAULT_MAX_HISTORY_BYTES
    _warned: set[str] = field(default_factory=set, repr=False, compare=False)

    @classmethod
    def from_env(cls) -> "ScanHistory":
        default_dir = Path(os.getenv(HOME_ENV) or DEFAULT_HOME_DIR) / "audit"
        base_dir = Path(os.getenv(AUDIT_DIR_ENV) or default_dir)
        return cls(
            path=base_dir / HISTORY_FILE_NAME,
            max_bytes=_parse_max_bytes(os.getenv(AUDIT_MAX_BYTES_ENV)),
        )

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".1")

    def append(self, record: ScanRecord) -> bool:
        """Write ``record``; returns ``False`` when the history is unwritable."""

        line = json.dumps(record.to_mapping(), ensure_ascii=False, sort_keys=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._rotate_if_needed()
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as exc:
            # Warn once per history.
            if "write" not in self._warned:
                self._warned.add("write")
                _LOG.warning(
                    "Unable to record scan of %s in %s: %s",
                    record.target_id,
                    self.path,
                    exc,
                )
            return False
        return True

    def records(self, target_id: str | None = None) -> Iterator[ScanRecord]:
        """Yield stored records oldest first, optionally for one target only."""

        for path in (self.backup_path, self.path):
            try:
                lines = path.read_text(encoding="utf-8").splitlines()
            except FileNotFoundError:
                continue
            for number, line in enumerate(lines, start=1):
                if not line.strip():
                    continue
                try:
                    record = ScanRecord.from_mapping(json.loads(line))
                except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                    _LOG.debug("Skipping unreadable line %d of %s", number, path)
                    continue
                if target_id is None or record.target_id == target_id:
                    yield record

    def _rotate_if_needed(self) -> None:
        if self.max_bytes is None:
            return
        try:
            size = self.path.stat().st_size
        except FileNotFoundError:
            return
        if size >= self.max_bytes:
            self.backup_path.unlink(missing_ok=True)
            self.path.rename(self.backup_path)


_CUSTOM_HISTORY: ScanHistory | None = None
_ENV_HISTORY: ScanHistory | None = None


def set_scan_history(history: ScanHistory | None) -> None:
    """Use ``history`` instead of the environment default (used by tests)."""

    global _CUSTOM_HISTORY, _ENV_HISTORY
    _CUSTOM_HISTORY = history
    _ENV_HISTORY = None


def reset_scan_history() -> None:
    set_scan_history(None)


def get_scan_history() -> ScanHistory:
    global _ENV_HISTORY
    if _CUSTOM_HISTORY is not None:
        return _CUSTOM_HISTORY
    if _ENV_HISTORY is None:
        _ENV_HISTORY = ScanHistory.from_env()
    return _ENV_HISTORY
