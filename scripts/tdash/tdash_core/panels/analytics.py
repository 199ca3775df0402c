"""Analytics report and active-users renderers."""

from __future__ import annotations

from rich.align import Align
from rich.panel import Panel as RichPanel
from rich.text import Text

from tdash_core.layout import LayoutCell
from tdash_core.models import Panel
from tdash_core.panels import header_table, panel_from_table


def render(panel: Panel, cell: LayoutCell) -> RichPanel:
    if cell.aside:
        return render_aside(panel, cell)

    table = header_table(panel.columns)
    width = len(panel.columns)
    for row, style in zip(panel.rows, cell.row_styles):
        values = [row.label, *row.values]
        # Pad short rows out to the header width.
        values += [""] * max(0, width - len(values))
        table.add_row(*values[: width or None], style="bold" if row.label == "TOTAL" else style)
    return panel_from_table(panel.title, panel.severity, table, width=cell.width)


def render_aside(panel: Panel, cell: LayoutCell) -> RichPanel:
    label, value = panel.aside[0]
    return RichPanel(
        Align.center(Text(value, style="bold white")),
        title=f"[bold]{label}[/bold]",
        border_style="white",
        width=cell.width,
    )
