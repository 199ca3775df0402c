from __future__ import annotations

import threading
import unittest
from datetime import datetime, timezone
from pathlib import Path
import sys

from rich.console import Console

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tdash_core.adapters import FetchContext, SourceAdapter  # noqa: E402
from tdash_core.layout import plan_layout  # noqa: E402
from tdash_core.models import DashboardSnapshot, DashConfig, SourceConfig, SourceKind  # noqa: E402
from tdash_core.panel_builder import FetchOutcome, build_snapshot  # noqa: E402
from tdash_core.render import RenderLoop, render_dashboard  # noqa: E402
from tdash_core.scheduler import RefreshScheduler, SchedulerState  # noqa: E402
from tdash_core.terminal import TerminalEvent  # noqa: E402

COMPLETED = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def sample_snapshot() -> DashboardSnapshot:
    travis = SourceConfig(kind=SourceKind.TRAVIS, identity="acme", token="t")
    jenkins = SourceConfig(kind=SourceKind.JENKINS, identity="https://ci.example", uri="https://ci.example", username="u", password="p")
    analytics = SourceConfig(kind=SourceKind.ANALYTICS, identity="42", keyfile="ga.json")
    return build_snapshot(
        [
            FetchOutcome(
                source=analytics,
                raw_rows=(
                    {
                        "view_id": "42",
                        "name": "example.com",
                        "active_users": "9",
                        "report": {
                            "columnHeader": {
                                "dimensions": ["ga:pagePath"],
                                "metricHeader": {"metricHeaderEntries": [{"name": "ga:sessions"}]},
                            },
                            "data": {"rows": [{"dimensions": ["/"], "metrics": [{"values": ["12"]}]}]},
                        },
                    },
                ),
            ),
            FetchOutcome(
                source=travis,
                raw_rows=(
                    {"repo": "acme/api", "branch": "master", "state": "failed"},
                    {"repo": "acme/web", "branch": "master", "state": "fixed"},
                ),
            ),
            FetchOutcome(source=jenkins, raw_rows=({"name": "deploy", "lastBuild": {"result": "FAILURE"}},)),
        ],
        show_all_builds=False,
        completed_at=COMPLETED,
        cycle=1,
    )


def render_text(snapshot: DashboardSnapshot, width: int = 160) -> str:
    console = Console(record=True, width=width, height=30, color_system=None)
    plan = plan_layout(snapshot, width)
    console.print(render_dashboard(snapshot, plan, DashConfig()))
    return console.export_text()


class FakeTerminal:
    def __init__(self, width: int = 120):
        self.width = width
        self.events: list[TerminalEvent] = []
        self.frames: list[object] = []
        self.closed = False

    def init(self):
        pass

    def close(self):
        self.closed = True

    def current_width(self) -> int:
        return self.width

    def poll_event(self, timeout: float):
        if self.events:
            return self.events.pop(0)
        return None

    def render_grid(self, renderable):
        self.frames.append(renderable)


class GatedAdapter(SourceAdapter):
    kind = SourceKind.TRAVIS

    def __init__(self, gate: threading.Event):
        super().__init__(SourceConfig(kind=SourceKind.TRAVIS, identity="acme", token="t"))
        self.gate = gate
        self.started = threading.Event()
        self.calls = 0

    def fetch(self, ctx: FetchContext):
        self.calls += 1
        self.started.set()
        self.gate.wait(5)
        return [{"repo": "acme/api", "branch": "master", "state": "failed"}]


class RenderDashboardTests(unittest.TestCase):
    def test_contains_panels_and_rows(self):
        text = render_text(sample_snapshot())
        self.assertIn("Travis CI builds for acme", text)
        self.assertIn("acme/api", text)
        self.assertIn("acme/web", text)
        self.assertIn("Jenkins jobs at https://ci.example", text)
        self.assertIn("Active users for example.com", text)
        self.assertIn("TOTAL", text)

    def test_redraw_is_idempotent(self):
        snapshot = sample_snapshot()
        self.assertEqual(render_text(snapshot), render_text(snapshot))

    def test_waiting_message_before_first_cycle(self):
        text = render_text(DashboardSnapshot.empty())
        self.assertIn("Waiting for the first refresh", text)

    def test_all_passing_message(self):
        text = render_text(DashboardSnapshot(panels=(), completed_at=COMPLETED))
        self.assertIn("All builds passing", text)


class RenderLoopTests(unittest.TestCase):
    def test_redraws_new_snapshot_once(self):
        terminal = FakeTerminal()
        scheduler = RefreshScheduler([], DashConfig())
        loop = RenderLoop(terminal, scheduler, DashConfig())
        try:
            self.assertTrue(loop.step())
            self.assertEqual(len(terminal.frames), 1)
            self.assertTrue(loop.step())
            self.assertEqual(len(terminal.frames), 1)

            scheduler.slot.publish(sample_snapshot())
            self.assertTrue(loop.step())
            self.assertEqual(len(terminal.frames), 2)
            self.assertEqual(loop.last_plan, plan_layout(sample_snapshot(), 120))
        finally:
            scheduler.stop()

    def test_quit_event_stops_loop(self):
        terminal = FakeTerminal()
        terminal.events.append(TerminalEvent.QUIT)
        scheduler = RefreshScheduler([], DashConfig(interval_seconds=60))
        loop = RenderLoop(terminal, scheduler, DashConfig())
        self.assertEqual(loop.run(), 0)
        self.assertTrue(terminal.closed)
        self.assertEqual(scheduler.state, SchedulerState.STOPPED)

    def test_resize_mid_fetch_relayouts_without_new_cycle(self):
        gate = threading.Event()
        adapter = GatedAdapter(gate)
        scheduler = RefreshScheduler([adapter], DashConfig(adapter_timeout=5.0))
        terminal = FakeTerminal(width=150)
        loop = RenderLoop(terminal, scheduler, DashConfig())
        try:
            scheduler.slot.publish(sample_snapshot())
            loop.step()
            self.assertEqual(loop.last_plan.width, 150)

            self.assertTrue(scheduler.trigger("tick"))
            self.assertTrue(adapter.started.wait(2))
            terminal.width = 80
            terminal.events.append(TerminalEvent.RESIZE)
            frames_before = len(terminal.frames)
            self.assertTrue(loop.step())

            self.assertEqual(loop.last_plan.width, 80)
            self.assertEqual(len(terminal.frames), frames_before + 1)
            self.assertEqual(scheduler.state, SchedulerState.FETCHING)
            self.assertEqual(adapter.calls, 1)
        finally:
            gate.set()
            scheduler.stop()


if __name__ == "__main__":
    unittest.main()
