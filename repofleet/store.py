"""SQLite store for discovered repositories, scan paths, tags and settings."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from repofleet.config import DEFAULT_MAX_DEPTH
from repofleet.errors import NotFound, StoreError
from repofleet.git import DiscoveredRepo

logger = logging.getLogger(__name__)

DEFAULT_TAG_COLOR = "#808080"

SCHEMA = """
CREATE TABLE IF NOT EXISTS repositories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    remote_url TEXT,
    default_branch TEXT,
    last_scanned_at DATETIME,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_repositories_name ON repositories(name);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    color TEXT DEFAULT '#808080',
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS repository_tags (
    repo_id INTEGER NOT NULL,
    tag_id INTEGER NOT NULL,
    PRIMARY KEY (repo_id, tag_id),
    FOREIGN KEY (repo_id) REFERENCES repositories(id) ON DELETE CASCADE,
    FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS scan_paths (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL UNIQUE,
    enabled INTEGER DEFAULT 1,
    max_depth INTEGER DEFAULT 5,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

INSERT OR IGNORE INTO settings (key, value) VALUES
    ('schema_version', '1'),
    ('theme', 'system'),
    ('auto_scan', 'true'),
    ('scan_interval_minutes', '30');

CREATE TRIGGER IF NOT EXISTS update_repositories_timestamp
    AFTER UPDATE ON repositories
BEGIN
    UPDATE repositories SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
END;
"""


@dataclass(frozen=True)
class StoredRepo:
    id: int
    path: str
    name: str
    remote_url: Optional[str]
    default_branch: Optional[str]
    last_scanned_at: Optional[str] = None


@dataclass(frozen=True)
class ScanPath:
    id: int
    path: str
    enabled: bool
    max_depth: int


@dataclass(frozen=True)
class Tag:
    id: int
    name: str
    color: str


class Database:
    """One SQLite connection shared by all threads behind a lock."""

    def __init__(self, db_path: str | Path) -> None:
        self.path = str(db_path)
        logger.info("Opening database %s", self.path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open {self.path}: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Locked cursor; commits on success and rolls back on error."""
        with self._lock:
            cur = self._conn.cursor()
            try:
                yield cur
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StoreError(str(e)) from e
            finally:
                cur.close()

    # ── Repositories ────────────────────────────────────────────────────

    def upsert_repository(self, repo: DiscoveredRepo) -> int:
        """Insert or update by path, refreshing last_scanned_at. Returns the row id."""
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO repositories (path, name, remote_url, default_branch, last_scanned_at)
                VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(path) DO UPDATE SET
                    name = excluded.name,
                    remote_url = excluded.remote_url,
                    default_branch = excluded.default_branch,
                    last_scanned_at = CURRENT_TIMESTAMP
                """,
                (str(repo.path), repo.name, repo.remote_url, repo.default_branch),
            )
            cur.execute("SELECT id FROM repositories WHERE path = ?", (str(repo.path),))
            return cur.fetchone()[0]

    def get_all_repositories(self) -> list[StoredRepo]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT id, path, name, remote_url, default_branch, last_scanned_at "
                "FROM repositories ORDER BY name, path"
            )
            return [StoredRepo(*row) for row in cur.fetchall()]

    def get_repository(self, repo_id: int) -> StoredRepo:
        with self._cursor() as cur:
            cur.execute(
                "SELECT id, path, name, remote_url, default_branch, last_scanned_at "
                "FROM repositories WHERE id = ?",
                (repo_id,),
            )
            row = cur.fetchone()
        if row is None:
            raise NotFound(f"No repository with id {repo_id}")
        return StoredRepo(*row)

    def find_repository(self, path: str | Path) -> Optional[StoredRepo]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT id, path, name, remote_url, default_branch, last_scanned_at "
                "FROM repositories WHERE path = ?",
                (str(path),),
            )
            row = cur.fetchone()
        return StoredRepo(*row) if row else None

    # ── Scan Paths ──────────────────────────────────────────────────────

    def get_scan_paths(self) -> list[ScanPath]:
        with self._cursor() as cur:
            cur.execute("SELECT id, path, enabled, max_depth FROM scan_paths ORDER BY path")
            return [
                ScanPath(id=row[0], path=row[1], enabled=bool(row[2]), max_depth=int(row[3]))
                for row in cur.fetchall()
            ]

    def add_scan_path(self, path: str | Path, max_depth: int = DEFAULT_MAX_DEPTH) -> int:
        with self._cursor() as cur:
            cur.execute(
                "INSERT INTO scan_paths (path, max_depth) VALUES (?, ?)",
                (str(path), max_depth),
            )
            return cur.lastrowid

    def remove_scan_path(self, path_id: int) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM scan_paths WHERE id = ?", (path_id,))

    def update_scan_path(
        self,
        path_id: int,
        enabled: Optional[bool] = None,
        max_depth: Optional[int] = None,
    ) -> None:
        with self._cursor() as cur:
            if enabled is not None:
                cur.execute(
                    "UPDATE scan_paths SET enabled = ? WHERE id = ?", (int(enabled), path_id),
                )
            if max_depth is not None:
                cur.execute(
                    "UPDATE scan_paths SET max_depth = ? WHERE id = ?", (max_depth, path_id),
                )

    # ── Tags ────────────────────────────────────────────────────────────

    def get_all_tags(self) -> list[Tag]:
        with self._cursor() as cur:
            cur.execute("SELECT id, name, color FROM tags ORDER BY name")
            return [Tag(*row) for row in cur.fetchall()]

    def find_tag(self, name: str) -> Optional[Tag]:
        with self._cursor() as cur:
            cur.execute("SELECT id, name, color FROM tags WHERE name = ?", (name,))
            row = cur.fetchone()
        return Tag(*row) if row else None

    def create_tag(self, name: str, color: str = DEFAULT_TAG_COLOR) -> int:
        with self._cursor() as cur:
            cur.execute("INSERT INTO tags (name, color) VALUES (?, ?)", (name, color))
            return cur.lastrowid

    def delete_tag(self, tag_id: int) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM tags WHERE id = ?", (tag_id,))

    def assign_tag(self, repo_id: int, tag_id: int) -> None:
        with self._cursor() as cur:
            cur.execute(
                "INSERT OR IGNORE INTO repository_tags (repo_id, tag_id) VALUES (?, ?)",
                (repo_id, tag_id),
            )

    def remove_tag(self, repo_id: int, tag_id: int) -> None:
        with self._cursor() as cur:
            cur.execute(
                "DELETE FROM repository_tags WHERE repo_id = ? AND tag_id = ?",
                (repo_id, tag_id),
            )

    def get_repo_tags(self, repo_id: int) -> list[str]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT t.name FROM tags t
                JOIN repository_tags rt ON t.id = rt.tag_id
                WHERE rt.repo_id = ? ORDER BY t.name
                """,
                (repo_id,),
            )
            return [row[0] for row in cur.fetchall()]

    # ── Settings ────────────────────────────────────────────────────────

    def get_setting(self, key: str) -> Optional[str]:
        with self._cursor() as cur:
            cur.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cur.fetchone()
        return row[0] if row else None

    def set_setting(self, key: str, value: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )

    def get_version(self) -> int:
        value = self.get_setting("schema_version")
        try:
            return int(value) if value is not None else 0
        except ValueError:
            return 0
