"""Repo discovery: recursively find git working trees under a scan root."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from repofleet.errors import NotADirectory, NotFound
from repofleet.git import GIT_DIR

logger = logging.getLogger(__name__)

SKIP_DIRS = frozenset({
    "node_modules", ".venv", "venv", "__pycache__", "target", "build",
    "dist", ".gradle", ".dart_tool", "vendor", ".next", ".nuxt",
    "bin", "obj", ".tox", ".mypy_cache", ".ruff_cache", ".pytest_cache",
    "site-packages", ".cargo", ".rustup", "Pods",
})


def _is_descendant(path: str, ancestor: str) -> bool:
    """True when path lies strictly below ancestor (both canonical)."""
    prefix = ancestor.rstrip(os.sep) + os.sep
    return path != ancestor and path.startswith(prefix)


class DiscoveredSet:
    """Working-tree roots found during one discovery call.

    Paths are canonicalized on insert. A root below an already-known root is
    rejected as a submodule or nested repository; a root above known roots
    replaces them, so no two members are ever ancestor and descendant.
    Safe to share between threads.
    """

    def __init__(self) -> None:
        self._roots: set[str] = set()
        self._lock = threading.Lock()

    def add(self, path: str | Path) -> bool:
        """Record path as a root. Returns False if it was a duplicate or nested."""
        canonical = os.path.realpath(path)
        with self._lock:
            if canonical in self._roots:
                return False
            if any(_is_descendant(canonical, root) for root in self._roots):
                logger.debug("Skipping nested repository %s", canonical)
                return False
            nested = {root for root in self._roots if _is_descendant(root, canonical)}
            for root in nested:
                logger.debug("Dropping %s, nested inside %s", root, canonical)
            self._roots -= nested
            self._roots.add(canonical)
            return True

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._lock:
            return os.path.realpath(path) in self._roots

    def __len__(self) -> int:
        with self._lock:
            return len(self._roots)

    def paths(self) -> list[Path]:
        """Sorted snapshot of the recorded roots."""
        with self._lock:
            return [Path(p) for p in sorted(self._roots)]


def is_working_tree(path: str | Path) -> bool:
    """Check whether path directly contains a .git directory (no traversal)."""
    return os.path.isdir(os.path.join(path, GIT_DIR))


def _walk(path: str, depth: int, max_depth: int, found: DiscoveredSet) -> None:
    """Depth-first walk of one directory. depth is path's depth below the root."""
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return

    has_git = False
    subdirs: list[os.DirEntry] = []

    for entry in entries:
        try:
            if not entry.is_dir(follow_symlinks=False):
                continue
        except OSError:
            continue
        if entry.name == GIT_DIR:
            has_git = True
        elif entry.name not in SKIP_DIRS:
            subdirs.append(entry)

    if has_git:
        if found.add(path):
            logger.debug("Found repository %s", path)
        # Anything further down would be nested inside this tree
        return

    # A child directory's .git sits two levels below this one
    if max_depth and depth + 2 > max_depth:
        return

    for d in subdirs:
        _walk(d.path, depth + 1, max_depth, found)


def discover(root: str | Path, max_depth: int = 0) -> list[Path]:
    """Find all git working-tree roots under root.

    max_depth bounds the depth of the .git directory below root; 0 means
    unlimited. Symbolic links are never followed. Returns a sorted list of
    canonical absolute paths, none of which lies inside another.
    """
    if max_depth < 0:
        raise ValueError(f"max_depth must be >= 0, got {max_depth}")
    root_path = Path(os.path.abspath(root))
    if not root_path.exists():
        raise NotFound(f"Path does not exist: {root_path}")
    if not root_path.is_dir():
        raise NotADirectory(f"Path is not a directory: {root_path}")

    logger.info("Scanning %s (max_depth=%d)", root_path, max_depth)
    found = DiscoveredSet()
    _walk(os.path.realpath(root_path), 0, max_depth, found)
    repos = found.paths()
    logger.info("Found %d repositories under %s", len(repos), root_path)
    return repos
