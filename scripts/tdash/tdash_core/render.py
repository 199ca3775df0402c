"""Render loop: the single consumer of published snapshots."""

from __future__ import annotations

import logging

from rich.console import Group
from rich.layout import Layout
from rich.panel import Panel as RichPanel
from rich.table import Table
from rich.text import Text

from tdash_core.layout import LayoutCell, LayoutPlan, plan_layout
from tdash_core.models import DashboardSnapshot, DashConfig, Panel, SourceKind
from tdash_core.panels import empty_panel
from tdash_core.panels.analytics import render as render_analytics
from tdash_core.panels.builds import render as render_builds
from tdash_core.panels.header import render as render_header
from tdash_core.scheduler import RefreshScheduler
from tdash_core.terminal import Terminal, TerminalEvent

logger = logging.getLogger(__name__)

HEADER_HEIGHT = 3
POLL_INTERVAL = 0.1


def render_panel(panel: Panel, cell: LayoutCell) -> RichPanel:
    if panel.kind is SourceKind.ANALYTICS:
        return render_analytics(panel, cell)
    return render_builds(panel, cell)


def empty_message(snapshot: DashboardSnapshot, config: DashConfig) -> str:
    if snapshot.completed_at is None:
        return "Waiting for the first refresh..."
    if config.show_all_builds:
        return "No builds reported."
    return "All builds passing."


def render_dashboard(snapshot: DashboardSnapshot, plan: LayoutPlan, config: DashConfig) -> Layout:
    """Build the full grid from scratch for one snapshot and plan."""
    panels = {panel.key: panel for panel in snapshot.panels}
    header = render_header(snapshot, config.interval_seconds, config.show_all_builds, plan.mode)

    body_rows: list[Layout] = []
    for index, row in enumerate(plan.rows):
        row_layout = Layout(name=f"row-{index}", size=row.height)
        row_layout.split_row(
            *(
                Layout(render_panel(panels[cell.panel_key], cell), size=cell.width)
                for cell in row.cells
            )
        )
        body_rows.append(row_layout)

    if not body_rows:
        body_rows.append(Layout(empty_panel("tdash", empty_message(snapshot, config)), name="empty", size=HEADER_HEIGHT))
    body_rows.append(Layout(Text(""), name="filler"))

    layout = Layout()
    layout.split_column(Layout(header, name="header", size=HEADER_HEIGHT), *body_rows)
    return layout


def render_report(snapshot: DashboardSnapshot, plan: LayoutPlan, config: DashConfig) -> Group:
    """Print-friendly grid: rows grow to fit their panels instead of the screen."""
    panels = {panel.key: panel for panel in snapshot.panels}
    parts: list = [render_header(snapshot, config.interval_seconds, config.show_all_builds, plan.mode)]
    for row in plan.rows:
        grid = Table.grid()
        for cell in row.cells:
            grid.add_column(width=cell.width)
        grid.add_row(*(render_panel(panels[cell.panel_key], cell) for cell in row.cells))
        parts.append(grid)
    if not plan.rows:
        parts.append(empty_panel("tdash", empty_message(snapshot, config)))
    return Group(*parts)


class RenderLoop:
    def __init__(
        self,
        terminal: Terminal,
        scheduler: RefreshScheduler,
        config: DashConfig,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.terminal = terminal
        self.scheduler = scheduler
        self.slot = scheduler.slot
        self.config = config
        self.poll_interval = poll_interval
        self.last_plan: LayoutPlan | None = None
        self._seen_version = -1

    def redraw(self, snapshot: DashboardSnapshot) -> LayoutPlan:
        plan = plan_layout(snapshot, self.terminal.current_width())
        self.terminal.render_grid(render_dashboard(snapshot, plan, self.config))
        self.last_plan = plan
        return plan

    def handle_event(self, event: TerminalEvent) -> bool:
        """Return False when the loop should stop."""
        if event is TerminalEvent.QUIT:
            logger.info("quit requested")
            return False
        if event is TerminalEvent.RESIZE:
            # Relayout now; the refresh itself is dropped if a cycle is in flight.
            self.scheduler.request_refresh()
            _, snapshot = self.slot.latest()
            self.redraw(snapshot)
        return True

    def step(self) -> bool:
        event = self.terminal.poll_event(self.poll_interval)
        if event is not None and not self.handle_event(event):
            return False
        version, snapshot = self.slot.latest()
        if version != self._seen_version:
            self._seen_version = version
            self.redraw(snapshot)
        return True

    def run(self) -> int:
        self.terminal.init()
        try:
            self.scheduler.start()
            while self.step():
                pass
        except KeyboardInterrupt:
            logger.info("interrupted")
        finally:
            self.scheduler.stop()
            self.terminal.close()
        return 0
