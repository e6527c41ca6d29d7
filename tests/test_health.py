"""Tests for the health engine and status classification."""

import os
import subprocess
import tempfile

import pytest

from repofleet.errors import ScanError
from repofleet.health import (
    HealthSnapshot,
    RepoStatus,
    classify,
    health,
    parse_porcelain_v2,
)


def _git(path: str, *args: str) -> None:
    subprocess.run(["git", "-C", path, *args], capture_output=True, check=True)


def _configure(path: str) -> None:
    _git(path, "config", "user.email", "test@test.com")
    _git(path, "config", "user.name", "Test User")
    _git(path, "config", "commit.gpgsign", "false")


def _init_repo(path: str) -> str:
    subprocess.run(["git", "init", "-q", "-b", "main", path], capture_output=True, check=True)
    _configure(path)
    return path


def _write(path: str, filename: str, content: str) -> None:
    full = os.path.join(path, filename)
    os.makedirs(os.path.dirname(full), exist_ok=True)
    with open(full, "w") as f:
        f.write(content)


def _commit(path: str, filename: str, content: str, message: str) -> None:
    _write(path, filename, content)
    _git(path, "add", filename)
    _git(path, "commit", "-q", "-m", message)


def _create_clean_repo(path: str) -> str:
    _init_repo(path)
    _commit(path, "README.md", "# Test\n", "initial")
    return path


def _clone(source: str, dest: str) -> str:
    subprocess.run(["git", "clone", "-q", source, dest], capture_output=True, check=True)
    _configure(dest)
    return dest


# ── Classification ──────────────────────────────────────────────────────


def test_classify_precedence_diverged_wins():
    snapshot = HealthSnapshot(uncommitted_count=4, commits_ahead=2, commits_behind=3)
    assert snapshot.is_dirty is True
    assert classify(snapshot) == RepoStatus.DIVERGED


def test_classify_behind_beats_dirty():
    assert classify(HealthSnapshot(staged_count=1, commits_behind=1)) == RepoStatus.BEHIND


def test_classify_ahead_beats_dirty():
    assert classify(HealthSnapshot(uncommitted_count=1, commits_ahead=5)) == RepoStatus.AHEAD


def test_classify_dirty_and_clean():
    assert classify(HealthSnapshot(staged_count=1)) == RepoStatus.DIRTY
    assert classify(HealthSnapshot(uncommitted_count=1)) == RepoStatus.DIRTY
    assert classify(HealthSnapshot()) == RepoStatus.CLEAN


def test_classify_ignores_stashes():
    assert classify(HealthSnapshot(stash_count=3)) == RepoStatus.CLEAN


@pytest.mark.parametrize("uncommitted,staged", [(0, 0), (1, 0), (0, 1), (2, 7)])
def test_is_dirty_matches_counts(uncommitted, staged):
    snapshot = HealthSnapshot(uncommitted_count=uncommitted, staged_count=staged)
    assert snapshot.is_dirty == (uncommitted > 0 or staged > 0)


def test_snapshot_to_dict_includes_status():
    data = HealthSnapshot(commits_ahead=1, current_branch="main").to_dict()
    assert data["status"] == "ahead"
    assert data["is_dirty"] is False
    assert data["current_branch"] == "main"


# ── Porcelain Parsing ───────────────────────────────────────────────────


def test_parse_porcelain_v2_counts():
    output = "\0".join([
        "1 M. N... 100644 100644 100644 aaaa bbbb staged.txt",
        "1 .M N... 100644 100644 100644 aaaa aaaa unstaged.txt",
        "1 MM N... 100644 100644 100644 aaaa bbbb both.txt",
        "2 R. N... 100644 100644 100644 aaaa aaaa R100 new name.txt",
        "old name.txt",
        "u UU N... 100644 100644 100644 100644 aaaa bbbb cccc conflict.txt",
        "? untracked.txt",
        "",
    ])
    staged, uncommitted = parse_porcelain_v2(output)
    assert staged == 3
    assert uncommitted == 4


def test_parse_porcelain_v2_empty():
    assert parse_porcelain_v2("") == (0, 0)


# ── Real Repositories ───────────────────────────────────────────────────


def test_clean_repo():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _create_clean_repo(os.path.join(tmp, "repo"))
        h = health(repo)
        assert h.is_dirty is False
        assert h.uncommitted_count == 0
        assert h.staged_count == 0
        assert h.stash_count == 0
        assert (h.commits_ahead, h.commits_behind) == (0, 0)
        assert h.current_branch == "main"
        assert h.is_detached is False
        assert h.status == RepoStatus.CLEAN


def test_untracked_file_is_dirty():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _create_clean_repo(os.path.join(tmp, "repo"))
        _write(repo, "dirty.txt", "uncommitted\n")
        h = health(repo)
        assert h.is_dirty is True
        assert h.uncommitted_count >= 1
        assert h.status == RepoStatus.DIRTY


def test_untracked_directories_counted_per_file():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _create_clean_repo(os.path.join(tmp, "repo"))
        _write(repo, "newdir/a.txt", "a\n")
        _write(repo, "newdir/deeper/b.txt", "b\n")
        assert health(repo).uncommitted_count == 2


def test_untracked_file_in_fresh_repo():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _init_repo(os.path.join(tmp, "repo"))
        _write(repo, "dirty.txt", "uncommitted\n")
        h = health(repo)
        assert h.is_dirty is True
        assert h.uncommitted_count > 0
        assert h.current_branch is None
        assert h.is_detached is False
        assert h.status == RepoStatus.DIRTY


def test_staged_file_counted():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _create_clean_repo(os.path.join(tmp, "repo"))
        _write(repo, "README.md", "# Changed\n")
        _git(repo, "add", "README.md")
        h = health(repo)
        assert h.staged_count >= 1
        assert h.uncommitted_count == 0
        assert h.is_dirty is True
        assert h.status == RepoStatus.DIRTY


def test_staged_in_fresh_repo():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _init_repo(os.path.join(tmp, "repo"))
        _write(repo, "staged.txt", "staged content\n")
        _git(repo, "add", "staged.txt")
        h = health(repo)
        assert h.staged_count == 1
        assert h.is_dirty is True


def test_path_with_staged_and_unstaged_changes_counts_in_both():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _create_clean_repo(os.path.join(tmp, "repo"))
        _write(repo, "README.md", "# Staged\n")
        _git(repo, "add", "README.md")
        _write(repo, "README.md", "# Staged then edited\n")
        h = health(repo)
        assert h.staged_count == 1
        assert h.uncommitted_count == 1


def test_deleted_file_is_unstaged_change():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _create_clean_repo(os.path.join(tmp, "repo"))
        os.remove(os.path.join(repo, "README.md"))
        h = health(repo)
        assert h.uncommitted_count == 1
        assert h.staged_count == 0


def test_ignored_files_are_not_counted():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _create_clean_repo(os.path.join(tmp, "repo"))
        _commit(repo, ".gitignore", "*.log\n", "ignore logs")
        _write(repo, "debug.log", "noise\n")
        assert health(repo).is_dirty is False


def test_stash_count():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _create_clean_repo(os.path.join(tmp, "repo"))
        _write(repo, "stashed.txt", "to stash\n")
        _git(repo, "add", ".")
        _git(repo, "stash", "-q")
        h = health(repo)
        assert h.stash_count == 1
        assert h.is_dirty is False


def test_detached_head():
    with tempfile.TemporaryDirectory() as tmp:
        repo = _create_clean_repo(os.path.join(tmp, "repo"))
        _git(repo, "checkout", "-q", "--detach")
        h = health(repo)
        assert h.is_detached is True
        assert (h.commits_ahead, h.commits_behind) == (0, 0)


def test_local_branch_without_upstream():
    with tempfile.TemporaryDirectory() as tmp:
        origin = _create_clean_repo(os.path.join(tmp, "origin"))
        clone = _clone(origin, os.path.join(tmp, "clone"))
        _git(clone, "checkout", "-q", "-b", "local-only")
        _commit(clone, "a.txt", "a\n", "local work")
        h = health(clone)
        assert h.current_branch == "local-only"
        assert (h.commits_ahead, h.commits_behind) == (0, 0)
        assert h.status == RepoStatus.CLEAN


def test_ahead_of_upstream():
    with tempfile.TemporaryDirectory() as tmp:
        origin = _create_clean_repo(os.path.join(tmp, "origin"))
        clone = _clone(origin, os.path.join(tmp, "clone"))
        _commit(clone, "a.txt", "a\n", "local 1")
        _commit(clone, "b.txt", "b\n", "local 2")
        h = health(clone)
        assert (h.commits_ahead, h.commits_behind) == (2, 0)
        assert h.status == RepoStatus.AHEAD


def test_behind_upstream():
    with tempfile.TemporaryDirectory() as tmp:
        origin = _create_clean_repo(os.path.join(tmp, "origin"))
        clone = _clone(origin, os.path.join(tmp, "clone"))
        _commit(origin, "remote.txt", "r\n", "remote work")
        _git(clone, "fetch", "-q")
        h = health(clone)
        assert (h.commits_ahead, h.commits_behind) == (0, 1)
        assert h.status == RepoStatus.BEHIND


def test_diverged_from_upstream_even_when_dirty():
    with tempfile.TemporaryDirectory() as tmp:
        origin = _create_clean_repo(os.path.join(tmp, "origin"))
        clone = _clone(origin, os.path.join(tmp, "clone"))
        _commit(origin, "remote.txt", "r\n", "remote work")
        _commit(clone, "local.txt", "l\n", "local work")
        _git(clone, "fetch", "-q")
        _write(clone, "scratch.txt", "wip\n")
        h = health(clone)
        assert (h.commits_ahead, h.commits_behind) == (1, 1)
        assert h.is_dirty is True
        assert h.status == RepoStatus.DIVERGED


def test_health_not_a_repo():
    with tempfile.TemporaryDirectory() as tmp:
        with pytest.raises(ScanError):
            health(tmp)


def test_health_nonexistent():
    with pytest.raises(ScanError):
        health("/nonexistent/path")
