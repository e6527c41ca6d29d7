"""Scan-root configuration and default locations."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

from repofleet.errors import ConfigError

if TYPE_CHECKING:
    from repofleet.store import Database

ROOTS_ENV = "REPOFLEET_ROOTS"
DB_ENV = "REPOFLEET_DB"
WORKERS_ENV = "REPOFLEET_WORKERS"

DEFAULT_MAX_DEPTH = 5
DEFAULT_WORKERS = 8


@dataclass(frozen=True)
class ScanRoot:
    """A directory to scan. max_depth 0 means unlimited."""

    path: Path
    max_depth: int = DEFAULT_MAX_DEPTH
    enabled: bool = True


def expand_home(path: str | Path) -> Path:
    """Expand a leading ~ or ~user; leave other paths alone."""
    return Path(os.path.expanduser(str(path)))


def resolve_path(path: str | Path) -> Path:
    """Home-expanded absolute form of a user-supplied path."""
    return Path(os.path.abspath(expand_home(path)))


def get_scan_roots(
    paths: Optional[Sequence[str]] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    db: Optional["Database"] = None,
) -> list[ScanRoot]:
    """Pick the roots to scan.

    Priority: explicit paths > REPOFLEET_ROOTS env var > enabled stored
    scan paths > current directory.
    """
    if paths:
        return [ScanRoot(resolve_path(p), max_depth) for p in paths]

    env_roots = os.getenv(ROOTS_ENV)
    if env_roots:
        return [
            ScanRoot(resolve_path(p), max_depth)
            for p in env_roots.split(os.pathsep)
            if p.strip()
        ]

    if db is not None:
        stored = [
            ScanRoot(resolve_path(sp.path), sp.max_depth, sp.enabled)
            for sp in db.get_scan_paths()
        ]
        enabled = [r for r in stored if r.enabled]
        if enabled:
            return enabled

    return [ScanRoot(Path.cwd(), max_depth)]


def default_db_path() -> Path:
    """REPOFLEET_DB, else $XDG_DATA_HOME/repofleet, else ~/.local/share/repofleet."""
    override = os.getenv(DB_ENV)
    if override:
        return resolve_path(override)
    data_home = os.getenv("XDG_DATA_HOME")
    base = resolve_path(data_home) if data_home else Path.home() / ".local" / "share"
    return base / "repofleet" / "repofleet.db"


def worker_count() -> int:
    raw = os.getenv(WORKERS_ENV)
    if not raw:
        return DEFAULT_WORKERS
    try:
        workers = int(raw)
    except ValueError as e:
        raise ConfigError(f"{WORKERS_ENV} must be an integer, got {raw!r}") from e
    if workers < 1:
        raise ConfigError(f"{WORKERS_ENV} must be at least 1, got {workers}")
    return workers
