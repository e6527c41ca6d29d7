"""CLI entry point for repofleet."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler

from repofleet import __version__
from repofleet.config import (
    DEFAULT_MAX_DEPTH,
    ROOTS_ENV,
    default_db_path,
    get_scan_roots,
    resolve_path,
    worker_count,
)
from repofleet.errors import NotFound, RepofleetError
from repofleet.fleet import RepoRecord, ScanReport, inspect_repo, scan_roots, summarize
from repofleet.git import extract, extract_host_from_url, extract_owner_from_url
from repofleet.history import history
from repofleet.store import DEFAULT_TAG_COLOR, Database

DEFAULT_LOG_LIMIT = 20

console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
    )


def _open_db(args: argparse.Namespace) -> Database:
    return Database(args.db or default_db_path())


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2))


def _progress(i: int, total: int, path: Path) -> None:
    print(f"\r  [{i}/{total}] {path.name:<30}", end="", file=sys.stderr)
    if i == total:
        print(file=sys.stderr)


# ── scan ────────────────────────────────────────────────────────────────


def _render_report(report: ScanReport) -> None:
    from rich.panel import Panel
    from rich.rule import Rule
    from rich.table import Table
    from rich.text import Text

    from repofleet.theme import (
        CYAN,
        GREEN,
        MUTED,
        RED,
        SURFACE,
        YELLOW,
        branch_text,
        drift_text,
        render_banner,
        status_badge,
        status_color,
    )

    console.print(render_banner())
    if not report.records:
        console.print(f"[{RED}]No git repos found.[/{RED}] Try: repofleet scan ~/code")
    else:
        summary = summarize(report.records)
        overview = Text()
        overview.append(f"  {summary.total}", style=f"bold {CYAN}")
        overview.append(" repos", style=MUTED)
        overview.append(f"    {summary.dirty}", style=f"bold {YELLOW}")
        overview.append(" dirty", style=MUTED)
        overview.append(f"    {summary.clean}", style=f"bold {GREEN}")
        overview.append(" clean", style=MUTED)
        overview.append(f"    {summary.stashes}", style=f"bold {CYAN}")
        overview.append(" stashes", style=MUTED)
        overview.append("\n ")
        for status, count in summary.by_status.items():
            overview.append(f" {count} ", style=f"bold {status_color(status)}")
            overview.append(status.value, style=MUTED)
        overview.append(f"\n  scanned in {report.duration_ms}ms", style=MUTED)
        console.print(Panel(overview, title=f"[bold {CYAN}]repofleet[/bold {CYAN}]", border_style=CYAN))

        console.print(Rule(f"[bold {CYAN}]Repositories[/bold {CYAN}]", style=CYAN))
        table = Table(border_style=SURFACE, show_edge=True, pad_edge=True)
        table.add_column("Repo", style=f"bold {CYAN}")
        table.add_column("Branch")
        table.add_column("Status", no_wrap=True)
        table.add_column("Staged", justify="right", style=GREEN)
        table.add_column("Unstaged", justify="right", style=YELLOW)
        table.add_column("Drift", justify="right", no_wrap=True)
        table.add_column("Stash", justify="right")
        table.add_column("Path", style=MUTED, overflow="fold")
        for record in report.records:
            h = record.health
            table.add_row(
                record.repo.name,
                branch_text(h),
                status_badge(record.status),
                str(h.staged_count),
                str(h.uncommitted_count),
                drift_text(h),
                str(h.stash_count),
                str(record.repo.path),
            )
        console.print(table)

    if report.errors:
        console.print(Rule(f"[bold {RED}]Errors[/bold {RED}]", style=RED))
        for error in report.errors:
            console.print(f"  [{RED}]✗[/{RED}] {error}")


def cmd_scan(args: argparse.Namespace) -> int:
    needs_db = args.save or not (args.paths or os.getenv(ROOTS_ENV))
    db = _open_db(args) if needs_db else None
    try:
        roots = get_scan_roots(args.paths, args.depth, db)
        report = scan_roots(roots, worker_count(), progress=_progress)
        if args.save and db is not None:
            for record in report.records:
                db.upsert_repository(record.repo)
    finally:
        if db is not None:
            db.close()

    if args.json_output:
        summary = summarize(report.records)
        _print_json({
            "repos": [r.to_dict() for r in report.records],
            "errors": report.errors,
            "duration_ms": report.duration_ms,
            "summary": {
                "total": summary.total,
                "dirty": summary.dirty,
                "clean": summary.clean,
                "stashes": summary.stashes,
                "by_status": {s.value: n for s, n in summary.by_status.items()},
            },
        })
    else:
        _render_report(report)
    return 0


# ── status / log ────────────────────────────────────────────────────────


def _record_json(record: RepoRecord) -> dict:
    data = record.to_dict()
    url = record.repo.remote_url
    data["remote_host"] = extract_host_from_url(url) if url else None
    data["remote_owner"] = extract_owner_from_url(url) if url else None
    return data


def cmd_status(args: argparse.Namespace) -> int:
    from rich.panel import Panel
    from rich.text import Text

    from repofleet.theme import CYAN, MUTED, branch_text, drift_text, status_badge

    record = inspect_repo(resolve_path(args.path))
    if args.json_output:
        _print_json(_record_json(record))
        return 0

    repo, h = record.repo, record.health
    text = Text()
    text.append("  Status:   ", style=MUTED)
    text.append_text(status_badge(record.status))
    text.append("\n  Branch:   ", style=MUTED)
    text.append_text(branch_text(h))
    text.append(f"  (default: {repo.default_branch or '—'})", style=MUTED)
    text.append("\n  Changes:  ", style=MUTED)
    text.append(f"{h.staged_count} staged, {h.uncommitted_count} unstaged")
    text.append("\n  Drift:    ", style=MUTED)
    text.append_text(drift_text(h))
    text.append("\n  Stashes:  ", style=MUTED)
    text.append(str(h.stash_count))
    text.append("\n  Remote:   ", style=MUTED)
    text.append(repo.remote_url or "—")
    console.print(Panel(text, title=f"[bold {CYAN}]{repo.name}[/bold {CYAN}]", border_style=CYAN))
    return 0


def cmd_log(args: argparse.Namespace) -> int:
    from rich.table import Table

    from repofleet.theme import CYAN, MUTED, SURFACE, YELLOW, format_timestamp

    entries = history(resolve_path(args.path), args.limit)
    if args.json_output:
        _print_json([e.to_dict() for e in entries])
        return 0

    if not entries:
        console.print(f"[{MUTED}]No commits yet.[/{MUTED}]")
        return 0

    table = Table(border_style=SURFACE, show_edge=True, pad_edge=True)
    table.add_column("Commit", style=f"bold {YELLOW}", no_wrap=True)
    table.add_column("Date", style=MUTED, no_wrap=True)
    table.add_column("Author", style=CYAN)
    table.add_column("Message")
    for e in entries:
        marker = " ⑂" if len(e.parent_ids) > 1 else ""
        table.add_row(e.short_id + marker, format_timestamp(e.timestamp), e.author_name, e.message_summary)
    console.print(table)
    return 0


# ── roots ───────────────────────────────────────────────────────────────


def cmd_roots(args: argparse.Namespace) -> int:
    with _open_db(args) as db:
        if args.roots_command == "add":
            path = resolve_path(args.path)
            path_id = db.add_scan_path(path, args.depth)
            console.print(f"Added scan root [bold]{path}[/bold] (id {path_id})")
        elif args.roots_command == "remove":
            db.remove_scan_path(args.id)
        elif args.roots_command in ("enable", "disable"):
            db.update_scan_path(args.id, enabled=args.roots_command == "enable")
        else:
            paths = db.get_scan_paths()
            if args.json_output:
                _print_json([
                    {"id": p.id, "path": p.path, "enabled": p.enabled, "max_depth": p.max_depth}
                    for p in paths
                ])
                return 0
            if not paths:
                console.print("No scan roots configured. Add one with: repofleet roots add ~/code")
            for p in paths:
                state = "[green]on [/green]" if p.enabled else "[red]off[/red]"
                depth = p.max_depth or "∞"
                console.print(f"  {p.id:>3}  {state}  depth {depth:<3} {p.path}")
    return 0


# ── tags ────────────────────────────────────────────────────────────────


def _stored_repo_id(db: Database, path_arg: str) -> int:
    """Row id for the repository at path, storing it first if needed."""
    path = resolve_path(path_arg)
    stored = db.find_repository(path)
    if stored is not None:
        return stored.id
    return db.upsert_repository(extract(path))


def cmd_tags(args: argparse.Namespace) -> int:
    with _open_db(args) as db:
        if args.tags_command == "create":
            tag_id = db.create_tag(args.name, args.color)
            console.print(f"Created tag [bold]{args.name}[/bold] (id {tag_id})")
        elif args.tags_command == "delete":
            db.delete_tag(args.id)
        elif args.tags_command in ("assign", "unassign"):
            tag = db.find_tag(args.name)
            if tag is None:
                raise NotFound(f"No tag named {args.name!r}")
            repo_id = _stored_repo_id(db, args.repo)
            if args.tags_command == "assign":
                db.assign_tag(repo_id, tag.id)
            else:
                db.remove_tag(repo_id, tag.id)
        else:
            tags = db.get_all_tags()
            if args.json_output:
                _print_json([{"id": t.id, "name": t.name, "color": t.color} for t in tags])
                return 0
            for t in tags:
                console.print(f"  {t.id:>3}  [{t.color}]■[/{t.color}] {t.name}")
    return 0


# ── tui ─────────────────────────────────────────────────────────────────


def cmd_tui(args: argparse.Namespace) -> int:
    from repofleet.tui import run_tui

    paths = getattr(args, "paths", None)
    needs_db = not (paths or os.getenv(ROOTS_ENV))
    db = _open_db(args) if needs_db else None
    try:
        roots = get_scan_roots(paths, getattr(args, "depth", DEFAULT_MAX_DEPTH), db)
    finally:
        if db is not None:
            db.close()
    run_tui(roots)
    return 0


def non_negative_int(value: str) -> int:
    """argparse type for depths and limits, where 0 is meaningful."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repofleet",
        description="Discover local git working trees and summarize their health.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log more (-v info, -vv debug)",
    )
    parser.add_argument(
        "--db",
        metavar="PATH",
        help="SQLite database for scan roots, tags and settings",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"repofleet {__version__}",
    )
    sub = parser.add_subparsers(dest="command")

    json_flag = argparse.ArgumentParser(add_help=False)
    json_flag.add_argument("--json", action="store_true", dest="json_output", help="Output JSON")

    depth_flag = argparse.ArgumentParser(add_help=False)
    depth_flag.add_argument(
        "--depth",
        type=non_negative_int,
        default=DEFAULT_MAX_DEPTH,
        metavar="N",
        help=f"Maximum .git depth below each root, 0 for unlimited (default: {DEFAULT_MAX_DEPTH})",
    )

    scan = sub.add_parser("scan", parents=[json_flag, depth_flag], help="Scan roots for repositories")
    scan.add_argument("paths", nargs="*", help="Directories to scan (default: configured roots)")
    scan.add_argument("--save", action="store_true", help="Store discovered repositories")
    scan.set_defaults(func=cmd_scan)

    status = sub.add_parser("status", parents=[json_flag], help="Health of one repository")
    status.add_argument("path")
    status.set_defaults(func=cmd_status)

    log = sub.add_parser("log", parents=[json_flag], help="Recent commits of one repository")
    log.add_argument("path")
    log.add_argument(
        "-n", "--limit", type=non_negative_int, default=DEFAULT_LOG_LIMIT, metavar="N",
    )
    log.set_defaults(func=cmd_log)

    roots = sub.add_parser("roots", help="Manage stored scan roots")
    roots_sub = roots.add_subparsers(dest="roots_command")
    roots_sub.add_parser("list", parents=[json_flag])
    roots_add = roots_sub.add_parser("add", parents=[depth_flag])
    roots_add.add_argument("path")
    for name in ("remove", "enable", "disable"):
        roots_sub.add_parser(name).add_argument("id", type=int)
    roots.set_defaults(func=cmd_roots, roots_command="list", json_output=False)

    tags = sub.add_parser("tags", help="Manage repository tags")
    tags_sub = tags.add_subparsers(dest="tags_command")
    tags_sub.add_parser("list", parents=[json_flag])
    tags_create = tags_sub.add_parser("create")
    tags_create.add_argument("name")
    tags_create.add_argument("--color", default=DEFAULT_TAG_COLOR)
    tags_sub.add_parser("delete").add_argument("id", type=int)
    for name in ("assign", "unassign"):
        p = tags_sub.add_parser(name)
        p.add_argument("repo", help="Repository path")
        p.add_argument("name", help="Tag name")
    tags.set_defaults(func=cmd_tags, tags_command="list", json_output=False)

    tui = sub.add_parser("tui", parents=[depth_flag], help="Interactive dashboard (default)")
    tui.add_argument("paths", nargs="*")
    tui.set_defaults(func=cmd_tui)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the repofleet CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    func = getattr(args, "func", cmd_tui)
    try:
        return func(args)
    except RepofleetError as e:
        if getattr(args, "json_output", False):
            _print_json({"error": e.to_dict()})
        else:
            err_console.print(f"[bold red]{e}[/bold red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
