"""Grid layout planning by terminal width and panel count."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import groupby

from tdash_core.models import DashboardSnapshot, Panel, Severity, SourceKind, StatusRow

MIN_COLUMN_WIDTH = 30
# Border (2) plus table header (1).
PANEL_CHROME_HEIGHT = 3
ASIDE_HEIGHT = 3
ANALYTICS_TABLE_SHARE = 3
ANALYTICS_ASIDE_SHARE = 1

SEVERITY_STYLE = {
    Severity.CRITICAL: "red",
    Severity.WARNING: "yellow",
    Severity.OK: "default",
    Severity.UNKNOWN: "white",
}
FIXED_STYLE = "green"


@dataclass(frozen=True)
class LayoutCell:
    panel_key: str
    width: int
    row_styles: tuple[str, ...] = ()
    aside: bool = False


@dataclass(frozen=True)
class LayoutRow:
    kind: SourceKind
    cells: tuple[LayoutCell, ...]
    height: int = ASIDE_HEIGHT


@dataclass(frozen=True)
class LayoutPlan:
    width: int
    mode: str
    rows: tuple[LayoutRow, ...]

    def widths(self) -> list[list[int]]:
        return [[cell.width for cell in row.cells] for row in self.rows]


def select_layout_mode(width: int) -> str:
    if width < 100:
        return "narrow"
    if width < 160:
        return "medium"
    return "wide"


def row_style_for(row: StatusRow) -> str:
    if row.just_fixed:
        return FIXED_STYLE
    return SEVERITY_STYLE[row.severity]


def column_widths(width: int, count: int) -> list[int]:
    """Split ``width`` evenly over ``count`` cells; leftmost cells take the remainder."""
    if count <= 0:
        return []
    width = max(count, int(width))
    base, extra = divmod(width, count)
    return [base + (1 if index < extra else 0) for index in range(count)]


def _cell(panel: Panel, width: int) -> LayoutCell:
    return LayoutCell(
        panel_key=panel.key,
        width=width,
        row_styles=tuple(row_style_for(row) for row in panel.rows),
    )


def _row_height(panels: list[Panel]) -> int:
    return max(ASIDE_HEIGHT, max(len(panel.rows) for panel in panels) + PANEL_CHROME_HEIGHT)


def _split_side_by_side(kind: SourceKind, panels: list[Panel], width: int) -> list[LayoutRow]:
    per_row = max(1, width // MIN_COLUMN_WIDTH)
    rows: list[LayoutRow] = []
    for start in range(0, len(panels), per_row):
        chunk = panels[start : start + per_row]
        widths = column_widths(width, len(chunk))
        rows.append(
            LayoutRow(
                kind=kind,
                cells=tuple(_cell(p, w) for p, w in zip(chunk, widths)),
                height=_row_height(chunk),
            )
        )
    return rows


def _analytics_rows(panel: Panel, width: int, mode: str) -> list[LayoutRow]:
    table_only = LayoutRow(kind=panel.kind, cells=(_cell(panel, max(1, width)),), height=_row_height([panel]))
    if not panel.aside:
        return [table_only]
    if mode == "narrow":
        # Stack the aside under the report.
        aside = LayoutCell(panel_key=panel.key, width=max(1, width), aside=True)
        return [table_only, LayoutRow(kind=panel.kind, cells=(aside,), height=ASIDE_HEIGHT)]
    total = ANALYTICS_TABLE_SHARE + ANALYTICS_ASIDE_SHARE
    table_width = max(1, width * ANALYTICS_TABLE_SHARE // total)
    aside_width = max(1, width - table_width)
    return [
        LayoutRow(
            kind=panel.kind,
            cells=(
                _cell(panel, table_width),
                LayoutCell(panel_key=panel.key, width=aside_width, aside=True),
            ),
            height=_row_height([panel]),
        )
    ]


def plan_layout(snapshot: DashboardSnapshot, width: int) -> LayoutPlan:
    """Compute the grid for one snapshot; a pure function of its inputs."""
    mode = select_layout_mode(width)
    rows: list[LayoutRow] = []
    for kind, group in groupby(snapshot.panels, key=lambda panel: panel.kind):
        panels = list(group)
        if kind is SourceKind.ANALYTICS:
            for panel in panels:
                rows.extend(_analytics_rows(panel, width, mode))
        else:
            rows.extend(_split_side_by_side(kind, panels, width))
    return LayoutPlan(width=width, mode=mode, rows=tuple(rows))
