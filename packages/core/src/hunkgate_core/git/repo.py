"""git subprocess wrappers.

Every call runs ``git`` with an argument list (never a shell) and
``capture_output``. Refs and ranges that come from the user go through
validate_ref() first, so nothing that looks like an option or a shell
metacharacter ever reaches the command line.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from hunkgate_core.errors import GitCommandError, InvalidRefError, NotARepositoryError

logger = logging.getLogger(__name__)

_GIT_TIMEOUT = 30
_REF_RE = re.compile(r"^[A-Za-z0-9\-_/.~^@:{}]+$")
_BRANCH_FORMAT = "%(refname:short)|%(objectname:short)|%(authorname)|%(committerdate:relative)|%(committerdate:unix)"


@dataclass
class BranchInfo:
    name: str
    last_commit_sha: str
    last_commit_author: str
    last_commit_age: str
    last_commit_timestamp: int


@dataclass
class DiffStats:
    file_count: int = 0
    insertions: int = 0
    deletions: int = 0


@dataclass
class BranchDetail:
    """Ahead/behind counts and diff size of a branch relative to a base."""

    ahead: int = 0
    behind: int = 0
    diff_stats: DiffStats = field(default_factory=DiffStats)


def validate_ref(ref: str) -> None:
    """Reject anything that is not plausibly a git ref or range.

    Allowed characters: ASCII letters, digits and ``- _ / . ~ ^ @ : { }``.
    A leading ``-`` is refused too, since git would read it as an option.
    """
    if not ref:
        raise InvalidRefError(ref, "empty ref")
    if not _REF_RE.fullmatch(ref):
        bad = next(ch for ch in ref if not _REF_RE.fullmatch(ch))
        raise InvalidRefError(ref, f"invalid character {bad!r}")
    if ref.startswith("-"):
        raise InvalidRefError(ref, "refs cannot start with '-'")


def _run_git(*args: str, check: bool = True) -> subprocess.CompletedProcess:
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="surrogateescape",
            timeout=_GIT_TIMEOUT,
        )
    except FileNotFoundError:
        raise GitCommandError("git executable not found")
    except subprocess.TimeoutExpired:
        raise GitCommandError(f"git {args[0]} timed out after {_GIT_TIMEOUT}s")

    if check and result.returncode != 0:
        raise GitCommandError(f"git {args[0]} failed: {result.stderr.strip()}")
    return result


def find_repo_root() -> Path:
    result = _run_git("rev-parse", "--show-toplevel", check=False)
    if result.returncode != 0:
        raise NotARepositoryError()
    return Path(result.stdout.strip())


def find_git_dir() -> Path:
    """Absolute path of the repository's git directory (usually ``.git``)."""
    result = _run_git("rev-parse", "--absolute-git-dir", check=False)
    if result.returncode != 0:
        raise NotARepositoryError()
    return Path(result.stdout.strip())


def find_hooks_dir() -> Path:
    """Absolute path of the hooks directory git actually runs.

    Honours ``core.hooksPath`` and resolves to the shared hooks directory
    from inside a linked worktree.
    """
    result = _run_git("rev-parse", "--path-format=absolute", "--git-path", "hooks", check=False)
    if result.returncode != 0:
        raise NotARepositoryError()
    return Path(result.stdout.strip())


def get_diff(diff_range: str) -> str:
    validate_ref(diff_range)
    # "--" pins the range as a revision so git never reads it as a path.
    return _run_git("diff", diff_range, "--").stdout


def get_head_sha() -> str:
    return _run_git("rev-parse", "HEAD").stdout.strip()


def get_current_branch() -> str | None:
    """Current branch name, or None on a detached HEAD."""
    branch = _run_git("branch", "--show-current").stdout.strip()
    return branch or None


def detect_default_branch() -> str:
    """origin/HEAD if the remote advertises one, else ``main``, else ``master``."""
    result = _run_git("symbolic-ref", "refs/remotes/origin/HEAD", check=False)
    if result.returncode == 0:
        symbolic = result.stdout.strip()
        if symbolic.startswith("refs/remotes/origin/"):
            return symbolic.removeprefix("refs/remotes/origin/")

    for candidate in ("main", "master"):
        if _run_git("rev-parse", "--verify", "--quiet", candidate, check=False).returncode == 0:
            return candidate

    raise GitCommandError("could not detect default branch")


def list_branches() -> list[BranchInfo]:
    """Local branches, most recently committed first."""
    stdout = _run_git(
        "for-each-ref",
        f"--format={_BRANCH_FORMAT}",
        "--sort=-committerdate",
        "refs/heads/",
    ).stdout

    branches = []
    for line in stdout.splitlines():
        fields = line.split("|")
        if len(fields) < 5:
            continue
        try:
            timestamp = int(fields[4])
        except ValueError:
            timestamp = 0
        branches.append(
            BranchInfo(
                name=fields[0],
                last_commit_sha=fields[1],
                last_commit_author=fields[2],
                last_commit_age=fields[3],
                last_commit_timestamp=timestamp,
            )
        )
    return branches


def get_branch_detail(base: str, branch: str) -> BranchDetail:
    validate_ref(base)
    validate_ref(branch)

    counts = _run_git("rev-list", "--count", "--left-right", f"{base}...{branch}").stdout.split()
    behind, ahead = (int(counts[0]), int(counts[1])) if len(counts) >= 2 else (0, 0)

    stats = DiffStats()
    numstat = _run_git("diff", "--numstat", f"{base}..{branch}", "--").stdout
    for line in numstat.splitlines():
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        # Binary files report "-" for both counts.
        if parts[0] == "-" or parts[1] == "-":
            continue
        stats.file_count += 1
        stats.insertions += int(parts[0])
        stats.deletions += int(parts[1])

    return BranchDetail(ahead=ahead, behind=behind, diff_stats=stats)


def run_commit(args: list[str] | tuple[str, ...]) -> int:
    """Run ``git commit`` attached to the terminal and return its exit code."""
    try:
        return subprocess.run(["git", "commit", *args]).returncode
    except FileNotFoundError:
        raise GitCommandError("git executable not found")
