"""Audit every build target of a Cargo workspace and its dependencies."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from ..domain.models import SafetyReport
from .eligibility import RUST_SUFFIX, is_valid_file
from .rust_parser import ParserFactory
from .safety_scan import scan_paths
from .scan_limits import ScanConfig

_LOG = logging.getLogger(__name__)

CARGO_TIMEOUT_SECONDS = 300

SKIPPED_TARGET_KINDS = frozenset({"example", "test", "bench"})
"""Target kinds that are not shipped code."""

BUILD_SCRIPT_KIND = "custom-build"


class CargoMetadataError(RuntimeError):
    """Raised when ``cargo metadata`` fails or returns something unusable."""


@dataclass(frozen=True)
class CargoTarget:
    name: str
    kinds: tuple[str, ...]
    src_path: Path

    @property
    def skipped(self) -> bool:
        return any(kind in SKIPPED_TARGET_KINDS for kind in self.kinds)

    @property
    def is_build_script(self) -> bool:
        return BUILD_SCRIPT_KIND in self.kinds


@dataclass(frozen=True)
class CargoPackage:
    name: str
    version: str
    targets: tuple[CargoTarget, ...]


def parse_cargo_metadata(raw: str) -> list[CargoPackage]:
    """Turn ``cargo metadata --format-version 1`` output into packages."""

    try:
        data = json.loads(raw)
        packages = []
        for package in data["packages"]:
            targets = tuple(
                CargoTarget(
                    name=target["name"],
                    kinds=tuple(target.get("kind") or ()),
                    src_path=Path(target["src_path"]),
                )
                for target in package["targets"]
            )
            packages.append(
                CargoPackage(
                    name=package["name"],
                    version=package.get("version", ""),
                    targets=targets,
                )
            )
    except (json.JSONDecodeError, KeyError, TypeError) as exc:
        raise CargoMetadataError("Unable to read cargo metadata output.") from exc
    return packages


def load_cargo_metadata(
    manifest_path: Path | None = None,
    timeout: int = CARGO_TIMEOUT_SECONDS,
) -> list[CargoPackage]:
    """Run ``cargo metadata`` for the current (or given) manifest."""

    cargo_cmd = shutil.which("cargo")
    if cargo_cmd is None:
        raise CargoMetadataError("cargo CLI missing")

    args = [cargo_cmd, "metadata", "--format-version", "1"]
    if manifest_path is not None:
        args += ["--manifest-path", str(manifest_path)]
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    except (subprocess.SubprocessError, OSError) as exc:
        raise CargoMetadataError(f"cargo metadata failed: {exc}") from exc

    if result.returncode != 0:
        message = (result.stderr or "").strip() or f"exit code {result.returncode}"
        raise CargoMetadataError(f"cargo metadata failed: {message}")
    return parse_cargo_metadata(result.stdout)


def target_source_files(target: CargoTarget) -> tuple[Path, list[str]]:
    """Return the directory to scan for a target and its files relative to it.

    A build script is scanned on its own; other targets cover every ``.rs``
    file below the directory holding their root source file.
    """

    base_path = target.src_path.parent
    if target.is_build_script:
        return base_path, [target.src_path.name]
    relative_paths = [
        path.relative_to(base_path).as_posix()
        for path in base_path.rglob(f"*{RUST_SUFFIX}")
        if path.is_file()
    ]
    return base_path, relative_paths


def target_id_for(package: CargoPackage, target: CargoTarget) -> str:
    return f"{package.name}/{target.name}"


def scan_cargo_packages(
    packages: Iterable[CargoPackage],
    *,
    config: ScanConfig | None = None,
    parser_factory: ParserFactory | None = None,
) -> list[SafetyReport]:
    """Build one report per shipped target, in metadata order."""

    config = config or ScanConfig.from_env()
    reports = []
    for package in packages:
        for target in package.targets:
            if target.skipped:
                _LOG.debug("Skipping %s target %s", target.kinds, target.name)
                continue
            base_path, relative_paths = target_source_files(target)
            reports.append(
                scan_paths(
                    target_id_for(package, target),
                    base_path,
                    relative_paths,
                    config=config,
                    parser_factory=parser_factory,
                    is_eligible=is_valid_file,
                    revision=package.version or None,
                )
            )
    return reports
