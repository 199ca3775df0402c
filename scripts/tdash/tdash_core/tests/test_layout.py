from __future__ import annotations

import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tdash_core.layout import (  # noqa: E402
    MIN_COLUMN_WIDTH,
    column_widths,
    plan_layout,
    row_style_for,
    select_layout_mode,
)
from tdash_core.models import DashboardSnapshot, Panel, SourceKind, StatusRow  # noqa: E402


def ci_panel(name: str, *states: str, kind: SourceKind = SourceKind.TRAVIS) -> Panel:
    rows = tuple(StatusRow(kind=kind, label=f"{name}/repo{i}", sub_label="master", state=s) for i, s in enumerate(states))
    return Panel(key=f"{kind.value}:{name}", kind=kind, title=name, columns=("repo", "branch", "state", "finished at"), rows=rows)


def analytics_panel(view: str) -> Panel:
    rows = (StatusRow(kind=SourceKind.ANALYTICS, label="/", values=("10",)),)
    return Panel(
        key=f"analytics:{view}",
        kind=SourceKind.ANALYTICS,
        title=view,
        columns=("PAGEPATH", "SESSIONS"),
        rows=rows,
        aside=(("Active users", "3"),),
    )


class LayoutModeTests(unittest.TestCase):
    def test_narrow(self):
        self.assertEqual(select_layout_mode(80), "narrow")

    def test_medium(self):
        self.assertEqual(select_layout_mode(120), "medium")

    def test_wide(self):
        self.assertEqual(select_layout_mode(180), "wide")


class ColumnWidthTests(unittest.TestCase):
    def test_even_split(self):
        self.assertEqual(column_widths(120, 3), [40, 40, 40])

    def test_remainder_goes_left(self):
        self.assertEqual(column_widths(100, 3), [34, 33, 33])
        self.assertEqual(sum(column_widths(157, 4)), 157)

    def test_no_panels(self):
        self.assertEqual(column_widths(120, 0), [])


class PlanTests(unittest.TestCase):
    def snapshot(self) -> DashboardSnapshot:
        return DashboardSnapshot(
            panels=(
                analytics_panel("site"),
                ci_panel("a", "failed", "fixed"),
                ci_panel("b", "running"),
                ci_panel("c", "errored", "success"),
                ci_panel("jenkins", "failed", kind=SourceKind.JENKINS),
            )
        )

    def test_same_kind_panels_share_a_row(self):
        plan = plan_layout(self.snapshot(), 150)
        self.assertEqual([row.kind for row in plan.rows], [SourceKind.ANALYTICS, SourceKind.TRAVIS, SourceKind.JENKINS])
        self.assertEqual(plan.rows[1].cells[0].width, 50)
        self.assertEqual([cell.panel_key for cell in plan.rows[1].cells], ["travis:a", "travis:b", "travis:c"])
        self.assertEqual(plan.widths()[2], [150])

    def test_analytics_row_is_split_three_to_one(self):
        plan = plan_layout(self.snapshot(), 120)
        table, aside = plan.rows[0].cells
        self.assertEqual((table.width, aside.width), (90, 30))
        self.assertFalse(table.aside)
        self.assertTrue(aside.aside)

    def test_narrow_terminal_stacks_analytics_aside(self):
        plan = plan_layout(self.snapshot(), 80)
        self.assertEqual(plan.mode, "narrow")
        table_row, aside_row = plan.rows[0], plan.rows[1]
        self.assertEqual([(c.width, c.aside) for c in table_row.cells], [(80, False)])
        self.assertEqual([(c.width, c.aside) for c in aside_row.cells], [(80, True)])
        self.assertEqual(aside_row.kind, SourceKind.ANALYTICS)

    def test_narrow_terminal_wraps(self):
        plan = plan_layout(self.snapshot(), MIN_COLUMN_WIDTH * 2)
        travis_rows = [row for row in plan.rows if row.kind is SourceKind.TRAVIS]
        self.assertEqual([len(row.cells) for row in travis_rows], [2, 1])

    def test_row_styles(self):
        plan = plan_layout(self.snapshot(), 150)
        self.assertEqual(plan.rows[1].cells[0].row_styles, ("red", "green"))
        self.assertEqual(plan.rows[1].cells[1].row_styles, ("yellow",))
        self.assertEqual(plan.rows[1].cells[2].row_styles, ("yellow", "default"))

    def test_row_height_tracks_tallest_panel(self):
        plan = plan_layout(self.snapshot(), 150)
        self.assertEqual(plan.rows[1].height, 2 + 3)

    def test_plan_is_idempotent(self):
        snapshot = self.snapshot()
        self.assertEqual(plan_layout(snapshot, 140), plan_layout(snapshot, 140))

    def test_relayout_on_width_change(self):
        snapshot = self.snapshot()
        self.assertNotEqual(plan_layout(snapshot, 140).widths(), plan_layout(snapshot, 90).widths())

    def test_style_for_fixed(self):
        self.assertEqual(row_style_for(StatusRow(kind=SourceKind.CIRCLECI, label="r", state="fixed")), "green")


if __name__ == "__main__":
    unittest.main()
