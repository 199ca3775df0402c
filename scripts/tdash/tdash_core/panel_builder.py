"""Group normalized rows into panels and assemble dashboard snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

from tdash_core.models import DashboardSnapshot, Panel, SourceConfig, SourceKind
from tdash_core.normalize import include_row, normalize

TITLE_FORMATS = {
    SourceKind.TRAVIS: "Travis CI builds for {identity}",
    SourceKind.CIRCLECI: "CircleCI builds for {identity}",
    SourceKind.JENKINS: "Jenkins jobs at {identity}",
    SourceKind.ANALYTICS: "Google Analytics data for {identity}",
}


@dataclass(frozen=True)
class FetchOutcome:
    """Settled result slot for one source in one cycle."""

    source: SourceConfig
    raw_rows: tuple[Any, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def panel_title(source: SourceConfig, name: str | None = None) -> str:
    return TITLE_FORMATS[source.kind].format(identity=name or source.identity)


def build_panel(
    source: SourceConfig,
    raw_rows: Sequence[Any],
    show_all_builds: bool,
    max_analytics_rows: int = 10,
) -> Panel | None:
    """Build one panel, or None when nothing survives the filter.

    Row order is whatever the adapter returned; no re-sorting happens here.
    """
    normalized = normalize(source.kind, list(raw_rows), max_rows=max_analytics_rows)
    rows = tuple(row for row in normalized.rows if include_row(row, show_all_builds))
    if not rows:
        return None
    return Panel(
        key=source.key,
        kind=source.kind,
        title=panel_title(source, normalized.title),
        columns=normalized.columns,
        rows=rows,
        aside=normalized.aside,
    )


def build_snapshot(
    outcomes: Sequence[FetchOutcome],
    show_all_builds: bool,
    max_analytics_rows: int = 10,
    completed_at: datetime | None = None,
    cycle: int = 0,
) -> DashboardSnapshot:
    """Assemble a snapshot in the order of ``outcomes`` (configured order)."""
    panels: list[Panel] = []
    failed: list[str] = []
    for outcome in outcomes:
        if not outcome.ok:
            failed.append(outcome.source.key)
            continue
        panel = build_panel(outcome.source, outcome.raw_rows, show_all_builds, max_analytics_rows)
        if panel is not None:
            panels.append(panel)
    return DashboardSnapshot(
        panels=tuple(panels),
        completed_at=completed_at or datetime.now(timezone.utc),
        failed_sources=tuple(failed),
        cycle=cycle,
    )
