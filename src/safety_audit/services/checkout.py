"""Local git checkouts of the repositories under audit.

All git work goes through the ``git`` command line with a bounded timeout.
"""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .scan_limits import ScanConfig

_LOG = logging.getLogger(__name__)

_COMMIT_PATTERN = re.compile(r"^[0-9a-fA-F]{4,64}$")


class CheckoutError(RuntimeError):
    """Raised when a usable working tree for a target cannot be produced."""

    def __init__(self, target_id: str, detail: str) -> None:
        super().__init__(f"{target_id}: {detail}")
        self.target_id = target_id
        self.detail = detail


@dataclass(frozen=True)
class LocalCheckout:
    """A working tree on disk and the commit it is at."""

    target_id: str
    path: Path
    head: str


def git_url_to_name(git_url: str) -> str:
    """Return the project name: the last URL segment, lowercased, sans ``.git``."""

    name = git_url.rstrip("/").split("/")[-1].lower()
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name


def checkout_path_for(git_url: str, config: ScanConfig) -> Path:
    """Return a checkout directory unique to ``git_url``.

    Repositories that share a name (forks, mirrors) get distinct directories.
    """

    digest = hashlib.sha256(git_url.encode("utf-8")).hexdigest()[:12]
    return config.home_dir / f"{git_url_to_name(git_url)}-{digest}"


def _run_git(
    target_id: str,
    args: list[str],
    *,
    timeout: int,
    cwd: Path | None = None,
) -> str:
    git_cmd = shutil.which("git")
    if git_cmd is None:
        raise CheckoutError(target_id, "git CLI missing")

    try:
        result = subprocess.run(
            [git_cmd, *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            errors="surrogateescape",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise CheckoutError(
            target_id, f"git {args[0]} timed out after {timeout}s"
        ) from exc
    except (subprocess.SubprocessError, OSError) as exc:
        raise CheckoutError(target_id, f"git {args[0]} failed: {exc}") from exc

    if result.returncode != 0:
        message = (result.stderr or result.stdout or "").strip()
        if not message:
            message = f"exit code {result.returncode}"
        raise CheckoutError(target_id, f"git {args[0]} failed: {message}")
    return result.stdout


def _is_repository(target_id: str, path: Path) -> bool:
    try:
        return (path / ".git").exists()
    except OSError as exc:
        raise CheckoutError(target_id, f"cannot read {path}: {exc}") from exc


def _has_entries(target_id: str, path: Path) -> bool:
    if not path.exists():
        return False
    try:
        return any(path.iterdir())
    except OSError as exc:
        raise CheckoutError(target_id, f"cannot read {path}: {exc}") from exc


def _default_ref(target_id: str, path: Path, config: ScanConfig) -> str:
    if config.default_branch:
        return f"origin/{config.default_branch}"
    _run_git(
        target_id,
        ["remote", "set-head", "origin", "--auto"],
        cwd=path,
        timeout=config.git_timeout_seconds,
    )
    return "origin/HEAD"


def _same_remote(origin: str, target_id: str) -> bool:
    if origin.rstrip("/") == target_id.rstrip("/"):
        return True
    # git records local clone sources as absolute paths.
    if "://" in target_id or not Path(target_id).exists():
        return False
    return Path(origin).resolve() == Path(target_id).resolve()


def _verify_origin(target_id: str, path: Path, config: ScanConfig) -> None:
    origin = _run_git(
        target_id,
        ["remote", "get-url", "origin"],
        cwd=path,
        timeout=config.git_timeout_seconds,
    ).strip()
    if not _same_remote(origin, target_id):
        raise CheckoutError(
            target_id, f"{path} is a checkout of {origin!r}, not of this target"
        )


def _refresh(target_id: str, path: Path, config: ScanConfig) -> None:
    """Fetch origin and move the working tree to the default reference."""

    _verify_origin(target_id, path, config)
    timeout = config.git_timeout_seconds
    _LOG.info("Fetching latest origin for %s into %s", target_id, path)
    _run_git(target_id, ["fetch", "--quiet", "origin"], cwd=path, timeout=timeout)
    ref = _default_ref(target_id, path, config)
    _run_git(target_id, ["reset", "--quiet", "--hard", ref], cwd=path, timeout=timeout)


def _clone(target_id: str, path: Path, config: ScanConfig) -> None:
    _LOG.info("Cloning %s into %s", target_id, path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CheckoutError(target_id, f"cannot create {path.parent}: {exc}") from exc
    args = ["clone", "--quiet"]
    if config.default_branch:
        args += ["--branch", config.default_branch]
    _run_git(
        target_id,
        [*args, "--", target_id, str(path)],
        timeout=config.git_timeout_seconds,
    )


def _pin(target_id: str, path: Path, commit: str, config: ScanConfig) -> None:
    if not _COMMIT_PATTERN.match(commit):
        raise CheckoutError(target_id, f"invalid commit id {commit!r}")
    timeout = config.git_timeout_seconds
    _run_git(
        target_id,
        ["cat-file", "-e", f"{commit}^{{commit}}"],
        cwd=path,
        timeout=timeout,
    )
    _LOG.info("Resetting %s to commit %s", target_id, commit)
    _run_git(target_id, ["reset", "--quiet", "--hard", commit], cwd=path, timeout=timeout)


def ensure_checkout(
    target_id: str,
    local_path: Path,
    pin: str | None = None,
    *,
    config: ScanConfig | None = None,
) -> LocalCheckout:
    """
    Make ``local_path`` hold a working tree of ``target_id``.

    Clones when nothing is on disk. An existing checkout must have
    ``target_id`` as its origin; it is fetched and hard-reset to the default
    branch tip. When ``pin`` is given the tree is reset to exactly
    that commit.

    Raises:
        CheckoutError: If any git step fails or times out.
    """

    config = config or ScanConfig.from_env()
    if _is_repository(target_id, local_path):
        _refresh(target_id, local_path, config)
    elif _has_entries(target_id, local_path):
        raise CheckoutError(
            target_id, f"{local_path} exists and is not a git repository"
        )
    else:
        _clone(target_id, local_path, config)

    if pin:
        _pin(target_id, local_path, pin, config)

    head = _run_git(
        target_id,
        ["rev-parse", "HEAD"],
        cwd=local_path,
        timeout=config.git_timeout_seconds,
    ).strip()
    return LocalCheckout(target_id=target_id, path=local_path, head=head)


def list_tracked_files(
    checkout: LocalCheckout, config: ScanConfig | None = None
) -> list[str]:
    """Return the checkout's tracked files as relative POSIX paths."""

    config = config or ScanConfig.from_env()
    output = _run_git(
        checkout.target_id,
        ["ls-files", "-z"],
        cwd=checkout.path,
        timeout=config.git_timeout_seconds,
    )
    return [entry for entry in output.split("\0") if entry]
