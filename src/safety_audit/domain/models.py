"""Core entities without I/O for the unsafe-code audit."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet


class UnsafeKind(Enum):
    """Every syntax category that can carry the ``unsafe`` marker."""

    UNSAFE_FUNCTION = "unsafe_function"
    UNSAFE_BLOCK = "unsafe_block"
    UNSAFE_IMPL = "unsafe_impl"
    UNSAFE_TRAIT = "unsafe_trait"
    UNSAFE_TRAIT_ITEM = "unsafe_trait_item"
    UNSAFE_IMPL_ITEM = "unsafe_impl_item"
    UNSAFE_ATTR = "unsafe_attr"


class ScanStatus(Enum):
    """Verdict of a completed scan."""

    PASSED = "passed"
    FAILED = "failed"

    @classmethod
    def from_findings(cls, findings: AbstractSet[UnsafeFinding]) -> ScanStatus:
        return cls.PASSED if not findings else cls.FAILED


@dataclass(frozen=True)
class UnsafeFinding:
    """One located ``unsafe`` occurrence.

    ``location`` is the formatted span string produced by the parser; two
    findings are the same finding iff kind and location both match.
    """

    kind: UnsafeKind
    location: str

    def to_mapping(self) -> dict[str, str]:
        return {"kind": self.kind.value, "occurrences": self.location}

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.location, self.kind.value)


@dataclass(frozen=True)
class SafetyReport:
    """Write-once verdict for one scanned target.

    The status is derived from the findings so a report can never claim to
    have passed while holding offenses.
    """

    target_id: str
    findings: frozenset[UnsafeFinding]

    def __post_init__(self) -> None:
        object.__setattr__(self, "findings", frozenset(self.findings))

    @property
    def status(self) -> ScanStatus:
        return ScanStatus.from_findings(self.findings)

    @property
    def passed(self) -> bool:
        return self.status is ScanStatus.PASSED

    def counts_by_kind(self) -> dict[str, int]:
        """Return how many offenses of each kind the report holds."""

        counts: dict[str, int] = {}
        for finding in self.findings:
            counts[finding.kind.value] = counts.get(finding.kind.value, 0) + 1
        return counts

    def to_mapping(self) -> dict[str, object]:
        offenses = sorted(self.findings, key=lambda finding: finding.sort_key)
        return {
            "target_id": self.target_id,
            "status": self.status.value,
            "offenses": [finding.to_mapping() for finding in offenses],
        }
