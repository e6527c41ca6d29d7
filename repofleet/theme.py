"""Shared visual constants and helpers for repofleet."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from rich.style import Style
from rich.text import Text

from repofleet.health import HealthSnapshot, RepoStatus

# ── Color Palette (GitHub Dark) ─────────────────────────────────────────

SURFACE = "#161b22"
MUTED = "#8b949e"

CYAN = "#58a6ff"
GREEN = "#39d353"
PURPLE = "#bc8cff"
YELLOW = "#e3b341"
RED = "#f85149"
ORANGE = "#f0883e"

STATUS_COLORS: dict[RepoStatus, str] = {
    RepoStatus.CLEAN: GREEN,
    RepoStatus.DIRTY: YELLOW,
    RepoStatus.AHEAD: CYAN,
    RepoStatus.BEHIND: ORANGE,
    RepoStatus.DIVERGED: RED,
}

STATUS_ICONS: dict[RepoStatus, str] = {
    RepoStatus.CLEAN: "●",
    RepoStatus.DIRTY: "✎",
    RepoStatus.AHEAD: "↑",
    RepoStatus.BEHIND: "↓",
    RepoStatus.DIVERGED: "⇅",
}

# ── ASCII Banner ────────────────────────────────────────────────────────

BANNER = r"""
                      __ _           _
  _ __ ___ _ __   ___ / _| | ___  ___| |_
 | '__/ _ \ '_ \ / _ \ |_| |/ _ \/ _ \ __|
 | | |  __/ |_) | (_) |  _| |  __/  __/ |_
 |_|  \___| .__/ \___/|_| |_|\___|\___|\__|
          |_|"""

TAGLINE = "every working tree, one glance"


def status_color(status: Optional[RepoStatus]) -> str:
    return STATUS_COLORS.get(status, MUTED) if status else MUTED


def status_badge(status: Optional[RepoStatus]) -> Text:
    """Icon plus label, colored by status."""
    if status is None:
        return Text("? unknown", style=Style(color=MUTED))
    return Text(
        f"{STATUS_ICONS[status]} {status.value}",
        style=Style(color=STATUS_COLORS[status], bold=True),
    )


def drift_text(snapshot: HealthSnapshot) -> Text:
    """Ahead/behind as ↑2 ↓3, dimmed when in sync."""
    text = Text()
    if not snapshot.commits_ahead and not snapshot.commits_behind:
        text.append("—", style=Style(color=MUTED))
        return text
    if snapshot.commits_ahead:
        text.append(f"↑{snapshot.commits_ahead}", style=Style(color=CYAN))
    if snapshot.commits_behind:
        if snapshot.commits_ahead:
            text.append(" ")
        text.append(f"↓{snapshot.commits_behind}", style=Style(color=ORANGE))
    return text


def branch_text(snapshot: HealthSnapshot) -> Text:
    if snapshot.current_branch is None:
        return Text("(no commits)", style=Style(color=MUTED, italic=True))
    if snapshot.is_detached:
        return Text("(detached)", style=Style(color=RED, italic=True))
    return Text(snapshot.current_branch, style=Style(color=PURPLE))


def format_timestamp(seconds: int) -> str:
    """Local date and time for a commit timestamp."""
    return datetime.fromtimestamp(seconds).strftime("%Y-%m-%d %H:%M")


# ── Banner Rendering ────────────────────────────────────────────────────

def render_banner() -> Text:
    """Render the repofleet ASCII banner as styled Rich Text."""
    text = Text(justify="center")
    for line in BANNER.strip("\n").split("\n"):
        text.append(line + "\n", style=Style(color=CYAN, bold=True))
    text.append(f"  {TAGLINE}\n", style=Style(color=MUTED, italic=True))
    return text
