"""Panel rendering helpers."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tdash_core.models import Severity

SEVERITY_BORDER = {
    Severity.OK: "green",
    Severity.UNKNOWN: "white",
    Severity.WARNING: "yellow",
    Severity.CRITICAL: "red",
}


def border_for(severity: Severity) -> str:
    return SEVERITY_BORDER.get(severity, "white")


def empty_panel(title: str, message: str = "No data") -> Panel:
    return Panel(Text(message, style="dim"), title=f"[bold]{title}[/bold]", border_style="white")


def panel_from_table(title: str, severity: Severity, table: Table, width: int | None = None) -> Panel:
    return Panel(table, title=f"[bold]{title}[/bold]", border_style=border_for(severity), width=width)


def header_table(columns: tuple[str, ...]) -> Table:
    table = Table(box=None, expand=True, pad_edge=False)
    for index, name in enumerate(columns):
        table.add_column(name, no_wrap=index > 0, overflow="fold")
    return table
