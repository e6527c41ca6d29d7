"""Tests for scan-root selection and environment configuration."""

import os
from pathlib import Path

import pytest

from repofleet.config import (
    DB_ENV,
    DEFAULT_WORKERS,
    ROOTS_ENV,
    WORKERS_ENV,
    ScanRoot,
    default_db_path,
    expand_home,
    get_scan_roots,
    resolve_path,
    worker_count,
)
from repofleet.errors import ConfigError
from repofleet.store import Database


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (ROOTS_ENV, DB_ENV, WORKERS_ENV, "XDG_DATA_HOME"):
        monkeypatch.delenv(name, raising=False)


def test_explicit_paths_win(monkeypatch, tmp_path):
    monkeypatch.setenv(ROOTS_ENV, "/from/env")
    roots = get_scan_roots([str(tmp_path)], max_depth=3)
    assert roots == [ScanRoot(tmp_path, 3)]


def test_env_roots(monkeypatch, tmp_path):
    a, b = tmp_path / "a", tmp_path / "b"
    monkeypatch.setenv(ROOTS_ENV, os.pathsep.join([str(a), "", str(b)]))
    roots = get_scan_roots()
    assert [r.path for r in roots] == [a, b]
    assert all(r.max_depth == 5 and r.enabled for r in roots)


def test_stored_roots_used_when_nothing_else_given(tmp_path):
    with Database(tmp_path / "fleet.db") as db:
        db.add_scan_path(tmp_path / "code", max_depth=2)
        disabled = db.add_scan_path(tmp_path / "old")
        db.update_scan_path(disabled, enabled=False)
        roots = get_scan_roots(db=db)
    assert roots == [ScanRoot(tmp_path / "code", 2, True)]


def test_cwd_fallback(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    with Database(":memory:") as db:
        roots = get_scan_roots(db=db)
    assert [r.path for r in roots] == [Path.cwd()]


def test_expand_home():
    home = Path.home()
    assert expand_home("~") == home
    assert expand_home("~/code") == home / "code"
    assert expand_home("/srv/code") == Path("/srv/code")
    assert expand_home("relative/~") == Path("relative/~")


def test_expand_home_follows_home_env(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    assert expand_home("~/code") == tmp_path / "code"


def test_expand_home_named_user():
    pwd = pytest.importorskip("pwd")
    entry = pwd.getpwuid(os.getuid())
    assert expand_home(f"~{entry.pw_name}/code") == Path(entry.pw_dir) / "code"


def test_resolve_path_is_absolute(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    assert resolve_path("sub") == tmp_path / "sub"


def test_default_db_path_override(monkeypatch, tmp_path):
    monkeypatch.setenv(DB_ENV, str(tmp_path / "custom.db"))
    assert default_db_path() == tmp_path / "custom.db"


def test_default_db_path_xdg(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    assert default_db_path() == tmp_path / "repofleet" / "repofleet.db"


def test_default_db_path_home():
    assert default_db_path() == Path.home() / ".local" / "share" / "repofleet" / "repofleet.db"


def test_worker_count(monkeypatch):
    assert worker_count() == DEFAULT_WORKERS
    monkeypatch.setenv(WORKERS_ENV, "3")
    assert worker_count() == 3


@pytest.mark.parametrize("value", ["many", "0", "-2"])
def test_worker_count_rejects_bad_values(monkeypatch, value):
    monkeypatch.setenv(WORKERS_ENV, value)
    with pytest.raises(ConfigError) as excinfo:
        worker_count()
    assert excinfo.value.to_dict()["code"] == "CONFIG_ERROR"
