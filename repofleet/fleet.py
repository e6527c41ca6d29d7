"""Multi-root scanning: discover trees, then collect metadata and health for each."""

from __future__ import annotations

import logging
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from repofleet.config import DEFAULT_WORKERS, ScanRoot
from repofleet.errors import RepofleetError
from repofleet.git import DiscoveredRepo, extract
from repofleet.health import HealthSnapshot, RepoStatus, health
from repofleet.scanner import DiscoveredSet, discover

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, Path], None]


@dataclass(frozen=True)
class RepoRecord:
    """Everything known about one working tree after a scan."""

    repo: DiscoveredRepo
    health: HealthSnapshot

    @property
    def status(self) -> RepoStatus:
        return self.health.status

    def to_dict(self) -> dict:
        data = self.repo.to_dict()
        data["health"] = self.health.to_dict()
        data["status"] = self.status.value
        return data


@dataclass
class ScanReport:
    records: list[RepoRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0


def discover_roots(
    roots: Sequence[ScanRoot],
    workers: int = DEFAULT_WORKERS,
) -> tuple[list[Path], list[str]]:
    """Discover every enabled root in parallel and merge the results.

    Overlapping roots are reconciled so the merged list holds each tree
    once and never a tree nested inside another. Invalid roots are
    reported as errors instead of failing the whole call.
    """
    enabled = [r for r in roots if r.enabled]
    errors: list[str] = []
    per_root: list[list[Path]] = []

    if not enabled:
        return [], errors

    with ThreadPoolExecutor(max_workers=min(workers, len(enabled))) as executor:
        futures = {executor.submit(discover, r.path, r.max_depth): r for r in enabled}
        for future in as_completed(futures):
            root = futures[future]
            try:
                per_root.append(future.result())
            except RepofleetError as e:
                logger.warning("Skipping scan root %s: %s", root.path, e)
                errors.append(f"{root.path}: {e}")

    merged = DiscoveredSet()
    # Shallow paths first so outer trees win regardless of completion order
    found = [p for paths in per_root for p in paths]
    for path in sorted(found, key=lambda p: (len(p.parts), str(p))):
        merged.add(path)
    return merged.paths(), errors


def inspect_repo(path: str | Path) -> RepoRecord:
    """Metadata and health for one tree. Raises ScanError if it cannot be opened."""
    return RepoRecord(repo=extract(path), health=health(path))


def scan_roots(
    roots: Sequence[ScanRoot],
    workers: int = DEFAULT_WORKERS,
    progress: Optional[ProgressCallback] = None,
) -> ScanReport:
    """Discover all roots, then inspect every tree in parallel."""
    start = time.monotonic()
    paths, errors = discover_roots(roots, workers)
    records: list[RepoRecord] = []

    if paths:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(inspect_repo, p): p for p in paths}
            for i, future in enumerate(as_completed(futures), 1):
                path = futures[future]
                try:
                    records.append(future.result())
                except RepofleetError as e:
                    logger.warning("Skipping %s: %s", path, e)
                    errors.append(f"{path}: {e}")
                if progress is not None:
                    progress(i, len(paths), path)

    records.sort(key=lambda r: (r.repo.name.lower(), str(r.repo.path)))
    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info("Scanned %d repositories in %dms", len(records), duration_ms)
    return ScanReport(records=records, errors=errors, duration_ms=duration_ms)


@dataclass
class FleetSummary:
    total: int = 0
    dirty: int = 0
    clean: int = 0
    stashes: int = 0
    by_status: dict[RepoStatus, int] = field(default_factory=dict)


def summarize(records: Sequence[RepoRecord]) -> FleetSummary:
    """Aggregate counts across a scan for the overview panel."""
    by_status: Counter[RepoStatus] = Counter(r.status for r in records)
    snapshots = [r.health for r in records]
    return FleetSummary(
        total=len(records),
        dirty=sum(1 for h in snapshots if h.is_dirty),
        clean=sum(1 for h in snapshots if not h.is_dirty),
        stashes=sum(h.stash_count for h in snapshots),
        by_status={status: by_status.get(status, 0) for status in RepoStatus},
    )
