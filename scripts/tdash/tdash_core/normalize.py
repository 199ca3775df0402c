"""Map adapter-native rows into StatusRow values.

Each source kind has one mapping function. Raw payload dictionaries never
leave this module; everything downstream sees only StatusRow and the
column/aside metadata collected in ``Normalized``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from tdash_core.errors import MalformedResponse
from tdash_core.formatting import clean_header, from_epoch_millis, parse_iso_timestamp
from tdash_core.models import Severity, SourceKind, StatusRow, classify_state

logger = logging.getLogger(__name__)

RUNNING = "RUNNING"

BUILD_COLUMNS = ("repo", "branch", "state", "finished at")
JENKINS_COLUMNS = ("job", "state", "finished at")

JENKINS_RESULTS = {
    "SUCCESS": "success",
    "FAILURE": "failed",
}


@dataclass(frozen=True)
class Normalized:
    rows: tuple[StatusRow, ...]
    columns: tuple[str, ...]
    aside: tuple[tuple[str, str], ...] = ()
    title: str | None = None


def _require_mapping(raw: Any) -> dict:
    if not isinstance(raw, dict):
        raise MalformedResponse(f"expected object, got {type(raw).__name__}")
    return raw


def _require_label(raw: dict, *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value:
            return str(value)
    raise MalformedResponse(f"row has none of {', '.join(keys)}")


def _started_state(state: Any, started: bool) -> str:
    text = str(state or "").strip()
    if text:
        return text
    return RUNNING if started else "unknown"


def map_travis(raw: Any) -> StatusRow:
    row = _require_mapping(raw)
    started = bool(row.get("started_at"))
    return StatusRow(
        kind=SourceKind.TRAVIS,
        label=_require_label(row, "repo"),
        sub_label=str(row.get("branch") or ""),
        state=_started_state(row.get("state"), started),
        timestamp=parse_iso_timestamp(row.get("finished_at")),
    )


def map_circleci(raw: Any) -> StatusRow:
    row = _require_mapping(raw)
    started = bool(row.get("start_time"))
    return StatusRow(
        kind=SourceKind.CIRCLECI,
        label=_require_label(row, "reponame"),
        sub_label=str(row.get("branch") or ""),
        state=_started_state(row.get("status"), started),
        timestamp=parse_iso_timestamp(row.get("stop_time")),
    )


def map_jenkins(raw: Any) -> StatusRow:
    job = _require_mapping(raw)
    label = _require_label(job, "displayName", "name")
    build = job.get("lastBuild")
    if build is None:
        return StatusRow(kind=SourceKind.JENKINS, label=label, state="unknown")
    build = _require_mapping(build)

    result = str(build.get("result") or "").strip()
    if result:
        state = JENKINS_RESULTS.get(result.upper(), result)
    else:
        state = RUNNING
    return StatusRow(
        kind=SourceKind.JENKINS,
        label=label,
        state=state,
        timestamp=from_epoch_millis(build.get("timestamp")),
    )


def _metric_values(entries: Iterable[Any]) -> list[str]:
    values: list[str] = []
    for entry in entries or []:
        values.extend(str(v) for v in _require_mapping(entry).get("values") or [])
    return values


def normalize_analytics(raw_rows: list[Any], max_rows: int = 10) -> Normalized:
    """Flatten one analytics view result into report rows plus a TOTAL row."""
    if not raw_rows:
        return Normalized(rows=(), columns=())
    payload = _require_mapping(raw_rows[0])
    name = str(payload.get("name") or payload.get("view_id") or "")
    report = _require_mapping(payload.get("report") or {})

    header = report.get("columnHeader") or {}
    dimensions = [clean_header(d) for d in header.get("dimensions") or []]
    metric_entries = (header.get("metricHeader") or {}).get("metricHeaderEntries") or []
    metrics = [clean_header(m.get("name", "")) for m in metric_entries if isinstance(m, dict)]
    columns = tuple(dimensions + metrics)

    data = report.get("data") or {}
    rows: list[StatusRow] = []
    for raw in (data.get("rows") or [])[: max(0, max_rows)]:
        try:
            entry = _require_mapping(raw)
            dims = [str(d) for d in entry.get("dimensions") or []]
            if not dims:
                raise MalformedResponse("report row has no dimensions")
            rows.append(
                StatusRow(
                    kind=SourceKind.ANALYTICS,
                    label=dims[0],
                    state="unknown",
                    values=tuple(dims[1:] + _metric_values(entry.get("metrics"))),
                )
            )
        except MalformedResponse as exc:
            logger.warning("skipping analytics row for %s: %s", name, exc)

    if rows and dimensions:
        rows.append(
            StatusRow(
                kind=SourceKind.ANALYTICS,
                label="TOTAL",
                state="unknown",
                values=tuple(["-"] * (len(dimensions) - 1) + _metric_values(data.get("totals"))),
            )
        )

    aside: tuple[tuple[str, str], ...] = ()
    active = payload.get("active_users")
    if active is not None:
        aside = ((f"Active users for {name}", str(active)),)
    return Normalized(rows=tuple(rows), columns=columns, aside=aside, title=name or None)


ROW_MAPPERS: dict[SourceKind, Callable[[Any], StatusRow]] = {
    SourceKind.TRAVIS: map_travis,
    SourceKind.CIRCLECI: map_circleci,
    SourceKind.JENKINS: map_jenkins,
}

KIND_COLUMNS = {
    SourceKind.TRAVIS: BUILD_COLUMNS,
    SourceKind.CIRCLECI: BUILD_COLUMNS,
    SourceKind.JENKINS: JENKINS_COLUMNS,
}


def normalize(kind: SourceKind, raw_rows: list[Any], max_rows: int = 10) -> Normalized:
    if kind is SourceKind.ANALYTICS:
        try:
            return normalize_analytics(raw_rows, max_rows=max_rows)
        except MalformedResponse as exc:
            logger.warning("skipping malformed analytics report: %s", exc)
            return Normalized(rows=(), columns=())

    mapper = ROW_MAPPERS[kind]
    rows: list[StatusRow] = []
    for raw in raw_rows:
        try:
            rows.append(mapper(raw))
        except MalformedResponse as exc:
            logger.warning("skipping malformed %s row: %s", kind.value, exc)
    return Normalized(rows=tuple(rows), columns=KIND_COLUMNS[kind])


def include_row(row: StatusRow, show_all_builds: bool) -> bool:
    """Keep actionable rows: anything not ok, plus just-fixed builds."""
    return show_all_builds or row.severity is not Severity.OK or row.just_fixed


__all__ = [
    "Normalized",
    "classify_state",
    "include_row",
    "map_circleci",
    "map_jenkins",
    "map_travis",
    "normalize",
    "normalize_analytics",
]
