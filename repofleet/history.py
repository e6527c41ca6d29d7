"""Commit history traversal, bounded and newest first."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from io import BufferedReader
from pathlib import Path
from typing import Iterator

from repofleet.errors import InternalError, ScanError
from repofleet.git import GitCommandError, git_command, open_working_tree, run_git

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 7
FIELD_SEP = "\x1f"
RECORD_SEP = b"\0"
READ_SIZE = 64 * 1024
# id, parents, author name, author email, committer time, subject
LOG_FORMAT = FIELD_SEP.join(["%H", "%P", "%an", "%ae", "%ct", "%s"])


@dataclass(frozen=True)
class CommitLogEntry:
    id: str
    short_id: str
    message_summary: str
    author_name: str
    author_email: str
    timestamp: int
    parent_ids: tuple[str, ...] = ()
    # Always empty: resolving refs per commit needs a reverse index, not built yet
    ref_names: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "short_id": self.short_id,
            "message_summary": self.message_summary,
            "author_name": self.author_name,
            "author_email": self.author_email,
            "timestamp": self.timestamp,
            "parent_ids": list(self.parent_ids),
            "ref_names": list(self.ref_names),
        }


def short_id(commit_id: str) -> str:
    """First seven characters of a commit id."""
    if len(commit_id) < SHORT_ID_LENGTH:
        raise InternalError(f"Commit id too short: {commit_id!r}")
    return commit_id[:SHORT_ID_LENGTH]


def parse_log_line(line: str) -> CommitLogEntry:
    """Parse one LOG_FORMAT line into an entry."""
    parts = line.rstrip("\n").split(FIELD_SEP, 5)
    if len(parts) != 6:
        raise InternalError(f"Unexpected git log record: {line!r}")
    commit_id, parents, author_name, author_email, timestamp, subject = parts
    try:
        seconds = int(timestamp)
    except ValueError as e:
        raise InternalError(f"Bad commit timestamp {timestamp!r} for {commit_id}") from e
    return CommitLogEntry(
        id=commit_id,
        short_id=short_id(commit_id),
        message_summary=subject,
        author_name=author_name or "Unknown",
        author_email=author_email,
        timestamp=seconds,
        parent_ids=tuple(parents.split()),
    )


def _head_commit(repo_path: Path) -> str | None:
    try:
        return run_git(
            repo_path, ["rev-parse", "--verify", "-q", "HEAD^{commit}"], timeout=10,
        ).strip() or None
    except GitCommandError:
        return None


def iter_history(path: str | Path, limit: int) -> Iterator[CommitLogEntry]:
    """Yield up to limit commits reachable from HEAD.

    Order is git's --date-order walk: no commit appears before any of its
    descendants in the walk, and otherwise newer commits come first. The
    walk stops once limit entries have been read; the git process is
    terminated when the generator finishes or is closed early.
    """
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    repo_path = open_working_tree(path)
    if limit == 0:
        return
    head = _head_commit(repo_path)
    if head is None:
        logger.debug("No HEAD commit in %s", repo_path)
        return

    # -z ends each record with NUL; subjects may contain \r
    cmd = git_command(repo_path, [
        "log", "-z", "--date-order", f"--max-count={limit}",
        f"--format={LOG_FORMAT}", head,
    ])
    try:
        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL)
    except OSError as e:
        raise ScanError(f"Failed to read history of {repo_path}: {e}") from e

    emitted = 0
    try:
        for record in _read_records(proc.stdout):
            yield parse_log_line(record)
            emitted += 1
            if emitted >= limit:
                break
    finally:
        if proc.poll() is None:
            proc.terminate()
        proc.communicate()
        if proc.returncode > 0:
            logger.warning(
                "git log exited %d in %s after %d commits",
                proc.returncode, repo_path, emitted,
            )


def _read_records(stream: BufferedReader) -> Iterator[str]:
    """Split a NUL-terminated byte stream into decoded records."""
    pending = b""
    while True:
        chunk = stream.read1(READ_SIZE)
        if not chunk:
            break
        pending += chunk
        *complete, pending = pending.split(RECORD_SEP)
        for raw in complete:
            if raw.strip():
                yield raw.decode("utf-8", errors="replace")
    if pending.strip():
        yield pending.decode("utf-8", errors="replace")


def history(path: str | Path, limit: int) -> list[CommitLogEntry]:
    """Bounded commit log starting at HEAD. Empty when HEAD has no commit."""
    return list(iter_history(path, limit))
