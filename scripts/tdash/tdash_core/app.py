"""tdash application entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console

from tdash_core.adapters import build_adapters
from tdash_core.config import resolve_config
from tdash_core.errors import FatalError
from tdash_core.layout import plan_layout
from tdash_core.models import DashConfig
from tdash_core.render import RenderLoop, render_report
from tdash_core.scheduler import RefreshScheduler
from tdash_core.terminal import Terminal

logger = logging.getLogger("tdash")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
QUIET_LOGGERS = ("urllib3", "requests", "google")


def setup_logging(debug: bool, log_file: str) -> None:
    """Log to a file; the terminal belongs to the dashboard."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tdash",
        description="A terminal dashboard with build status from Travis CI, CircleCI and Jenkins plus Google Analytics stats",
    )
    parser.add_argument("-l", "--live", action="store_true", help="Run live dashboard loop (q to quit)")
    parser.add_argument("--json", action="store_true", help="Emit one snapshot as JSON")
    parser.add_argument("--all", action="store_true", help="Show all builds even successful ones, defaults to only showing failures")
    parser.add_argument("--interval", help="Update interval (ex. 10s, 1m, 3h); default 2m")
    parser.add_argument("--timeout", help="Per-source fetch timeout; always below the interval")
    parser.add_argument("--config", help="Optional JSON config file")

    parser.add_argument("--ga-keyfile", help="Path to Google Analytics keyfile (default ~/.tdash/ga.json)")
    parser.add_argument("--ga-viewid", action="append", default=[], help="Google Analytics view ID (repeatable)")

    parser.add_argument("--travis-token", help="Travis CI API token (or env var TRAVISCI_API_TOKEN)")
    parser.add_argument("--travis-owner", action="append", default=[], help="Travis owner name for builds (repeatable)")
    parser.add_argument("--github-token", help="GitHub token for listing Travis owner repos (or env var GITHUB_TOKEN)")

    parser.add_argument("--circleci-token", help="CircleCI API token (or env var CIRCLECI_TOKEN)")
    parser.add_argument("--circleci-owner", action="append", default=[], help="CircleCI owner name for builds (repeatable)")

    parser.add_argument("--jenkins-uri", help="Jenkins base URI (or env var JENKINS_BASE_URI)")
    parser.add_argument("--jenkins-username", help="Jenkins username (or env var JENKINS_USERNAME)")
    parser.add_argument("--jenkins-password", help="Jenkins password or API token (or env var JENKINS_PASSWORD)")

    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Log file path (default ~/.tdash/tdash.log)")
    return parser


def _run_once(config: DashConfig, scheduler: RefreshScheduler, as_json: bool, console: Console) -> int:
    try:
        snapshot = scheduler.run_cycle()
    finally:
        scheduler.stop()
    if snapshot is None:
        return 1
    if as_json:
        print(json.dumps(snapshot.to_dict(), indent=2))
        return 0
    plan = plan_layout(snapshot, console.size.width)
    console.print(render_report(snapshot, plan, config))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
    except ValueError as exc:
        parser.print_usage(sys.stderr)
        print(f"tdash: error: {exc}", file=sys.stderr)
        return 2

    setup_logging(config.debug, config.log_file)
    adapters = build_adapters(config)
    if not adapters:
        logger.warning("no sources are configured; the dashboard will be empty")
    scheduler = RefreshScheduler(adapters, config)

    console = Console()
    if not args.live:
        return _run_once(config, scheduler, args.json, console)

    try:
        return RenderLoop(Terminal(console), scheduler, config).run()
    except FatalError as exc:
        scheduler.stop()
        logger.error("fatal: %s", exc)
        print(f"tdash: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
