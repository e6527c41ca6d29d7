"""Health engine: working-tree cleanliness, stashes and upstream drift.

Health is best-effort. Only a path that cannot be opened as a working tree
raises; every other sub-check falls back to its zero value when git fails,
because a partial snapshot is still useful on a dashboard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from repofleet.git import (
    GitCommandError,
    HeadState,
    open_working_tree,
    read_head,
    run_git,
)

logger = logging.getLogger(__name__)

# Defaults substituted when a sub-check fails
NO_CHANGES = (0, 0)       # (staged, uncommitted) when status cannot be read
NO_STASHES = 0            # stash list unreadable
NO_DRIFT = (0, 0)         # (ahead, behind): no upstream, or it cannot be resolved


class RepoStatus(str, Enum):
    """Derived status of a working tree, most urgent first."""

    DIVERGED = "diverged"
    BEHIND = "behind"
    AHEAD = "ahead"
    DIRTY = "dirty"
    CLEAN = "clean"


@dataclass(frozen=True)
class HealthSnapshot:
    """Point-in-time health of one working tree. is_dirty is derived."""

    uncommitted_count: int = 0
    staged_count: int = 0
    commits_ahead: int = 0
    commits_behind: int = 0
    stash_count: int = 0
    current_branch: Optional[str] = None
    is_detached: bool = False

    @property
    def is_dirty(self) -> bool:
        return self.uncommitted_count > 0 or self.staged_count > 0

    @property
    def status(self) -> RepoStatus:
        return classify(self)

    def to_dict(self) -> dict:
        return {
            "is_dirty": self.is_dirty,
            "uncommitted_count": self.uncommitted_count,
            "staged_count": self.staged_count,
            "commits_ahead": self.commits_ahead,
            "commits_behind": self.commits_behind,
            "stash_count": self.stash_count,
            "current_branch": self.current_branch,
            "is_detached": self.is_detached,
            "status": self.status.value,
        }


def classify(snapshot: HealthSnapshot) -> RepoStatus:
    """Map a snapshot to one status. Upstream drift outranks local edits."""
    if snapshot.commits_ahead > 0 and snapshot.commits_behind > 0:
        return RepoStatus.DIVERGED
    if snapshot.commits_behind > 0:
        return RepoStatus.BEHIND
    if snapshot.commits_ahead > 0:
        return RepoStatus.AHEAD
    if snapshot.is_dirty:
        return RepoStatus.DIRTY
    return RepoStatus.CLEAN


def parse_porcelain_v2(output: str) -> tuple[int, int]:
    """Count (staged, uncommitted) paths in `git status --porcelain=v2 -z` output.

    A path with both an index and a work-tree change counts once in each.
    """
    staged = 0
    uncommitted = 0
    records = iter(output.split("\0"))
    for record in records:
        if not record:
            continue
        kind = record[0]
        if kind == "?":
            uncommitted += 1
        elif kind == "u":
            uncommitted += 1
        elif kind in ("1", "2"):
            xy = record[2:4]
            if xy[:1] not in (".", ""):
                staged += 1
            if xy[1:2] not in (".", ""):
                uncommitted += 1
            if kind == "2":
                # renames and copies carry the original path as the next record
                next(records, None)
    return staged, uncommitted


def _count_changes(repo_path: Path) -> tuple[int, int]:
    try:
        output = run_git(repo_path, [
            "status", "--porcelain=v2", "-z",
            "--untracked-files=all", "--ignored=no",
        ], timeout=30)
    except GitCommandError as e:
        logger.debug("Status unavailable for %s: %s", repo_path, e)
        return NO_CHANGES
    return parse_porcelain_v2(output)


def _stash_count(repo_path: Path) -> int:
    try:
        output = run_git(repo_path, ["stash", "list"], timeout=10)
    except GitCommandError as e:
        logger.debug("Stash list unavailable for %s: %s", repo_path, e)
        return NO_STASHES
    return len([ln for ln in output.splitlines() if ln.strip()])


def _upstream_of(repo_path: Path, branch: str) -> Optional[str]:
    try:
        upstream = run_git(
            repo_path, ["rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}"], timeout=10,
        ).strip()
    except GitCommandError:
        return None
    return upstream or None


def _ahead_behind(repo_path: Path, branch: str) -> tuple[int, int]:
    """Commits on branch but not its upstream, and the reverse."""
    upstream = _upstream_of(repo_path, branch)
    if upstream is None:
        # purely local branches are the common case
        return NO_DRIFT
    try:
        output = run_git(repo_path, [
            "rev-list", "--left-right", "--count",
            f"refs/heads/{branch}...{upstream}",
        ], timeout=30)
    except GitCommandError as e:
        logger.debug("Ahead/behind unavailable for %s: %s", repo_path, e)
        return NO_DRIFT
    parts = output.split()
    if len(parts) != 2:
        return NO_DRIFT
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return NO_DRIFT


def health(path: str | Path) -> HealthSnapshot:
    """Compute a fresh health snapshot for the working tree at path.

    Raises ScanError if path is not a working tree.
    """
    repo_path = open_working_tree(path)
    head: HeadState = read_head(repo_path)
    staged, uncommitted = _count_changes(repo_path)

    ahead, behind = NO_DRIFT
    if head.is_branch and head.shorthand:
        ahead, behind = _ahead_behind(repo_path, head.shorthand)

    return HealthSnapshot(
        uncommitted_count=uncommitted,
        staged_count=staged,
        commits_ahead=ahead,
        commits_behind=behind,
        stash_count=_stash_count(repo_path),
        current_branch=head.shorthand,
        is_detached=head.is_detached,
    )
