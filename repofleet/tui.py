"""Textual TUI dashboard: repository health table with per-repo history."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import DataTable, Footer, Header, Label, Static

from repofleet.config import ScanRoot, worker_count
from repofleet.errors import RepofleetError
from repofleet.fleet import ScanReport, scan_roots, summarize
from repofleet.history import CommitLogEntry, history
from repofleet.theme import (
    branch_text,
    drift_text,
    format_timestamp,
    status_badge,
    status_color,
)

HISTORY_LIMIT = 50


class OverviewPanel(Static):
    """Counts across the whole scan."""

    def update_data(self, report: ScanReport) -> None:
        summary = summarize(report.records)
        text = Text()
        text.append("  Repos: ", style="dim")
        text.append(f"{summary.total}", style="bold cyan")
        text.append("    Dirty: ", style="dim")
        text.append(f"{summary.dirty}", style="bold yellow")
        text.append("    Stashes: ", style="dim")
        text.append(f"{summary.stashes}", style="bold")
        text.append("    Errors: ", style="dim")
        text.append(f"{len(report.errors)}", style="bold red" if report.errors else "bold")
        text.append("\n ")
        for status, count in summary.by_status.items():
            text.append(f" {count} ", style=f"bold {status_color(status)}")
            text.append(status.value, style="dim")
        text.append(f"    ({report.duration_ms}ms)", style="dim")
        self.update(text)


class RepoTable(DataTable):
    """One row per working tree, keyed by path."""

    def update_data(self, report: ScanReport) -> None:
        self.clear(columns=True)
        self.add_columns("Repo", "Branch", "Status", "Staged", "Unstaged", "Drift", "Stash")
        for record in report.records:
            h = record.health
            self.add_row(
                record.repo.name,
                branch_text(h),
                status_badge(record.status),
                str(h.staged_count),
                str(h.uncommitted_count),
                drift_text(h),
                str(h.stash_count),
                key=str(record.repo.path),
            )


class HistoryTable(DataTable):
    """Recent commits of the selected repository."""

    def update_data(self, entries: list[CommitLogEntry]) -> None:
        self.clear(columns=True)
        self.add_columns("Commit", "Date", "Author", "Message")
        for e in entries:
            self.add_row(e.short_id, format_timestamp(e.timestamp), e.author_name, e.message_summary)


class RepofleetApp(App):
    """repofleet: every working tree, one glance."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #overview {
        height: auto;
        min-height: 4;
        border: solid $accent;
        padding: 0 1;
    }

    #repos {
        height: 2fr;
        border: solid $secondary;
    }

    #history {
        height: 1fr;
        border: solid $secondary;
    }

    #loading {
        content-align: center middle;
        text-align: center;
        height: 100%;
    }
    """

    TITLE = "repofleet"
    SUB_TITLE = "every working tree, one glance"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "rescan", "Rescan"),
        Binding("tab", "focus_next", "Next Panel"),
        Binding("shift+tab", "focus_previous", "Prev Panel"),
    ]

    def __init__(self, roots: Sequence[ScanRoot]) -> None:
        super().__init__()
        self.roots = list(roots)
        self.report: Optional[ScanReport] = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Label("  Scanning repos...", id="loading")
        yield Footer()

    def on_mount(self) -> None:
        self.run_scan()

    def action_rescan(self) -> None:
        self.run_scan()

    @work(thread=True, exclusive=True, group="scan")
    def run_scan(self) -> None:
        """Scan all roots in a background thread."""

        def progress(i: int, total: int, path: Path) -> None:
            self.call_from_thread(self._update_loading, f"  Scanning repo {i}/{total}...")

        report = scan_roots(self.roots, worker_count(), progress=progress)
        self.report = report
        if not report.records:
            self.call_from_thread(self._show_no_repos, report)
            return
        self.call_from_thread(self._render_dashboard, report)

    @work(thread=True, exclusive=True, group="history")
    def load_history(self, path: str) -> None:
        try:
            entries = history(path, HISTORY_LIMIT)
        except RepofleetError as e:
            self.call_from_thread(self.notify, str(e), severity="error")
            return
        self.call_from_thread(self._show_history, entries)

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if event.data_table.id == "repos" and event.row_key.value:
            self.load_history(event.row_key.value)

    def _update_loading(self, text: str) -> None:
        loading = self.query("#loading")
        if loading:
            loading.first(Label).update(text)

    def _show_no_repos(self, report: ScanReport) -> None:
        message = "  No git repos found. Try: repofleet tui ~/code"
        if report.errors:
            message += "\n  " + "\n  ".join(report.errors)
        self._update_loading(message)

    def _show_history(self, entries: list[CommitLogEntry]) -> None:
        tables = self.query("#history")
        if tables:
            tables.first(HistoryTable).update_data(entries)

    def _render_dashboard(self, report: ScanReport) -> None:
        """Replace the loading label with the dashboard, or refresh it in place."""
        if not self.query("#repos"):
            self.query("#loading").remove()
            footer = self.query_one(Footer)
            table = RepoTable(id="repos", cursor_type="row")
            self.mount(OverviewPanel(id="overview"), before=footer)
            self.mount(table, before=footer)
            self.mount(HistoryTable(id="history"), before=footer)
            table.focus()

        self.query_one("#overview", OverviewPanel).update_data(report)
        self.query_one("#repos", RepoTable).update_data(report)


def run_tui(roots: Sequence[ScanRoot]) -> None:
    """Launch the repofleet TUI dashboard."""
    app = RepofleetApp(roots)
    app.run()
