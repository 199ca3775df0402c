from __future__ import annotations

import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock
import sys

from rich.console import Console

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tdash_core import app  # noqa: E402
from tdash_core.adapters import FetchContext, SourceAdapter  # noqa: E402
from tdash_core.errors import TransientFetchError  # noqa: E402
from tdash_core.layout import plan_layout  # noqa: E402
from tdash_core.models import DashboardSnapshot, DashConfig, SourceConfig, SourceKind  # noqa: E402
from tdash_core.panel_builder import FetchOutcome, build_snapshot  # noqa: E402
from tdash_core.render import render_report  # noqa: E402
from tdash_core.scheduler import RefreshScheduler  # noqa: E402


class StaticAdapter(SourceAdapter):
    kind = SourceKind.TRAVIS

    def __init__(self, owner: str, rows=(), error: Exception | None = None):
        super().__init__(SourceConfig(kind=SourceKind.TRAVIS, identity=owner, token="t"))
        self.rows = list(rows)
        self.error = error

    def fetch(self, ctx: FetchContext):
        if self.error is not None:
            raise self.error
        return self.rows


def failed_rows(count: int) -> list[dict]:
    return [{"repo": f"acme/repo{i:02d}", "branch": "master", "state": "failed"} for i in range(count)]


class AppTests(unittest.TestCase):
    def run_main(self, argv: list[str], adapters: list[SourceAdapter], console: Console | None = None):
        stdout, stderr = io.StringIO(), io.StringIO()
        patches = [
            mock.patch("tdash_core.app.build_adapters", return_value=adapters),
            mock.patch("tdash_core.app.setup_logging"),
        ]
        if console is not None:
            patches.append(mock.patch("tdash_core.app.Console", return_value=console))
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = app.main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_json_output(self):
        adapters = [
            StaticAdapter("acme", rows=failed_rows(2) + [{"repo": "acme/ok", "branch": "master", "state": "passed"}]),
            StaticAdapter("broken", error=TransientFetchError("status 503")),
        ]
        code, out, _ = self.run_main(["--json"], adapters)
        self.assertEqual(code, 0)

        payload = json.loads(out)
        self.assertEqual(payload["cycle"], 1)
        self.assertIsNotNone(payload["completed_at"])
        self.assertEqual(payload["failed_sources"], ["travis:broken"])
        self.assertEqual([panel["key"] for panel in payload["panels"]], ["travis:acme"])
        panel = payload["panels"][0]
        self.assertEqual(panel["title"], "Travis CI builds for acme")
        self.assertEqual(panel["severity"], "critical")
        self.assertEqual([row["label"] for row in panel["rows"]], ["acme/repo00", "acme/repo01"])
        self.assertEqual(panel["rows"][0]["state"], "failed")

    def test_print_mode_shows_every_failed_row(self):
        buffer = io.StringIO()
        console = Console(file=buffer, width=120, height=25, color_system=None)
        code, _, _ = self.run_main([], [StaticAdapter("acme", rows=failed_rows(40))], console=console)
        self.assertEqual(code, 0)

        text = buffer.getvalue()
        self.assertIn("Travis CI builds for acme", text)
        missing = [f"acme/repo{i:02d}" for i in range(40) if f"acme/repo{i:02d}" not in text]
        self.assertEqual(missing, [])

    def test_no_cycle_is_exit_one(self):
        with mock.patch.object(RefreshScheduler, "run_cycle", return_value=None):
            code, out, _ = self.run_main(["--json"], [])
        self.assertEqual(code, 1)
        self.assertEqual(out, "")

    def test_bad_config_is_usage_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            cfg_path = Path(tmp) / "cfg.json"
            cfg_path.write_text("[1, 2]")
            code, _, err = self.run_main(["--config", str(cfg_path)], [])
        self.assertEqual(code, 2)
        self.assertIn("usage: tdash", err)
        self.assertIn("JSON object", err)


class ReportRenderTests(unittest.TestCase):
    def test_report_is_not_cropped_to_console_height(self):
        source = SourceConfig(kind=SourceKind.TRAVIS, identity="acme", token="t")
        snapshot = build_snapshot([FetchOutcome(source=source, raw_rows=tuple(failed_rows(40)))], show_all_builds=False, cycle=1)
        console = Console(file=io.StringIO(), width=120, height=25, color_system=None, record=True)
        console.print(render_report(snapshot, plan_layout(snapshot, 120), DashConfig()))

        text = console.export_text()
        self.assertGreater(len(text.splitlines()), 25)
        self.assertIn("acme/repo39", text)

    def test_empty_report_message(self):
        console = Console(file=io.StringIO(), width=100, color_system=None, record=True)
        console.print(render_report(DashboardSnapshot.empty(), plan_layout(DashboardSnapshot.empty(), 100), DashConfig()))
        self.assertIn("Waiting for the first refresh", console.export_text())


if __name__ == "__main__":
    unittest.main()
