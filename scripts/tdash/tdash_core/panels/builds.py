"""CI build panel renderer."""

from __future__ import annotations

from rich.panel import Panel as RichPanel

from tdash_core.formatting import display_time
from tdash_core.layout import LayoutCell
from tdash_core.models import Panel, SourceKind, StatusRow
from tdash_core.panels import header_table, panel_from_table


def row_cells(row: StatusRow) -> list[str]:
    if row.kind is SourceKind.JENKINS:
        return [row.label, row.state, display_time(row.timestamp)]
    return [row.label, row.sub_label or "-", row.state, display_time(row.timestamp)]


def render(panel: Panel, cell: LayoutCell) -> RichPanel:
    table = header_table(panel.columns)
    for row, style in zip(panel.rows, cell.row_styles):
        table.add_row(*row_cells(row), style=style)
    return panel_from_table(panel.title, panel.severity, table, width=cell.width)
