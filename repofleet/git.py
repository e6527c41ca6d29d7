"""Git access and repository metadata, read through the git executable."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from repofleet.errors import ScanError

logger = logging.getLogger(__name__)

GIT_DIR = ".git"
UNKNOWN_NAME = "unknown"
REMOTE_NAME = "origin"
FALLBACK_DEFAULT_BRANCHES = ("main", "master")

# user@host:owner/repo.git
SCP_LIKE = re.compile(r"^[^@/\s]+@([^:/\s]+):(.*)$")
URL_SCHEMES = frozenset({"http", "https", "ssh", "git"})


class GitCommandError(Exception):
    """A git invocation exited non-zero, timed out, or could not start."""

    def __init__(self, args: list[str], returncode: Optional[int], stderr: str) -> None:
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(f"git {' '.join(args)} failed ({returncode}): {self.stderr}")


def git_command(repo_path: str | Path, args: list[str]) -> list[str]:
    """Build the argv for a read-only git call inside repo_path."""
    # --no-optional-locks keeps `git status` from rewriting the index
    return ["git", "--no-optional-locks", "-C", str(repo_path)] + args


def run_git(repo_path: str | Path, args: list[str], timeout: int = 60) -> str:
    """Run a git command and return stdout, raising GitCommandError on failure."""
    logger.debug("git %s (in %s)", " ".join(args), repo_path)
    try:
        result = subprocess.run(
            git_command(repo_path, args),
            capture_output=True,
            text=True,
            timeout=timeout,
            errors="replace",
        )
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(args, None, f"timed out after {timeout}s") from e
    except (FileNotFoundError, OSError) as e:
        raise GitCommandError(args, None, str(e)) from e
    if result.returncode != 0:
        raise GitCommandError(args, result.returncode, result.stderr)
    return result.stdout


def open_working_tree(path: str | Path) -> Path:
    """Check that path is the root of a git working tree and return it absolute.

    Raises ScanError when the directory is missing or is not a working-tree
    root (a plain directory, or a subdirectory of some other tree).
    """
    repo_path = Path(os.path.abspath(path))
    if not repo_path.is_dir():
        raise ScanError(f"Failed to open repository: {repo_path} is not a directory")
    try:
        toplevel = run_git(repo_path, ["rev-parse", "--show-toplevel"], timeout=10).strip()
    except GitCommandError as e:
        raise ScanError(f"Failed to open repository: {e}") from e
    if os.path.realpath(toplevel) != os.path.realpath(repo_path):
        raise ScanError(
            f"Failed to open repository: {repo_path} is inside the working tree {toplevel}"
        )
    return repo_path


@dataclass(frozen=True)
class HeadState:
    """What HEAD resolves to. shorthand is None when HEAD has no commit yet."""

    shorthand: Optional[str] = None
    is_branch: bool = False

    @property
    def is_detached(self) -> bool:
        return self.shorthand is not None and not self.is_branch


def read_head(repo_path: str | Path) -> HeadState:
    """Resolve HEAD. An unborn branch is reported as unresolved, not detached."""
    try:
        run_git(repo_path, ["rev-parse", "--verify", "-q", "HEAD"], timeout=10)
    except GitCommandError:
        return HeadState()
    try:
        branch = run_git(repo_path, ["symbolic-ref", "-q", "--short", "HEAD"], timeout=10).strip()
    except GitCommandError:
        return HeadState(shorthand="HEAD", is_branch=False)
    return HeadState(shorthand=branch, is_branch=True)


def branch_exists(repo_path: str | Path, name: str) -> bool:
    try:
        run_git(repo_path, ["show-ref", "--verify", "-q", f"refs/heads/{name}"], timeout=10)
    except GitCommandError:
        return False
    return True


# ── Metadata Extraction ─────────────────────────────────────────────────


@dataclass(frozen=True)
class DiscoveredRepo:
    """Identity of a discovered working tree."""

    path: Path
    name: str
    remote_url: Optional[str] = None
    default_branch: Optional[str] = None
    current_branch: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "remote_url": self.remote_url,
            "default_branch": self.default_branch,
            "current_branch": self.current_branch,
        }


def _remote_url(repo_path: Path) -> Optional[str]:
    try:
        url = run_git(repo_path, ["remote", "get-url", REMOTE_NAME], timeout=10).strip()
    except GitCommandError:
        return None
    return url or None


def _default_branch(repo_path: Path, head: HeadState) -> Optional[str]:
    """Branch HEAD points at, else the first conventional branch that exists."""
    if head.is_branch:
        return head.shorthand
    for name in FALLBACK_DEFAULT_BRANCHES:
        if branch_exists(repo_path, name):
            return name
    return None


def extract(path: str | Path) -> DiscoveredRepo:
    """Open a working tree and read its name, origin URL and branches."""
    repo_path = open_working_tree(path)
    head = read_head(repo_path)
    return DiscoveredRepo(
        path=repo_path,
        name=repo_path.name or UNKNOWN_NAME,
        remote_url=_remote_url(repo_path),
        default_branch=_default_branch(repo_path, head),
        current_branch=head.shorthand,
    )


# ── Remote URL Helpers ──────────────────────────────────────────────────


def _first_segment(path: str) -> Optional[str]:
    segments = [s for s in path.split("/") if s]
    return segments[0] if segments else None


def extract_owner_from_url(url: str) -> Optional[str]:
    """Owner/organization segment of an SSH or HTTPS remote URL.

    Handles:
      - git@github.com:owner/repo.git
      - https://github.com/owner/repo.git
      - ssh://git@host/owner/repo.git
    """
    match = SCP_LIKE.match(url)
    if match:
        return _first_segment(match.group(2))

    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme in URL_SCHEMES and parsed.netloc:
        return _first_segment(parsed.path)
    return None


def extract_host_from_url(url: str) -> Optional[str]:
    """Host of an SSH or HTTPS remote URL, or None if the form is unrecognized."""
    match = SCP_LIKE.match(url)
    if match:
        return match.group(1)

    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme in URL_SCHEMES and host:
        return host
    return None
