"""Header renderer."""

from __future__ import annotations

from rich.panel import Panel

from tdash_core.formatting import display_time, format_duration
from tdash_core.models import DashboardSnapshot


def render(snapshot: DashboardSnapshot, interval_seconds: float, show_all: bool, layout_mode: str) -> Panel:
    failed = len(snapshot.failed_sources)
    failed_style = "red" if failed else "green"
    refreshed = display_time(snapshot.completed_at) if snapshot.completed_at else "pending"
    text = (
        f"Refreshed: [bold]{refreshed}[/bold]   "
        f"Every: [bold]{format_duration(interval_seconds)}[/bold]   "
        f"Showing: [bold]{'all builds' if show_all else 'failures'}[/bold]   "
        f"Panels: [bold]{len(snapshot.panels)}[/bold]   "
        f"Failed sources: [bold {failed_style}]{failed}[/bold {failed_style}]   "
        f"Layout: [bold]{layout_mode}[/bold]   "
        "[dim]q to quit[/dim]"
    )
    return Panel(text, title="[bold]tdash[/bold]", border_style="cyan")
