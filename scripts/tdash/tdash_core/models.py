"""Shared model contracts for the refresh/render data flow."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Severity(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class SourceKind(str, Enum):
    TRAVIS = "travis"
    CIRCLECI = "circleci"
    JENKINS = "jenkins"
    ANALYTICS = "analytics"

    @property
    def is_ci(self) -> bool:
        return self is not SourceKind.ANALYTICS


SEVERITY_RANK = {
    Severity.OK: 0,
    Severity.UNKNOWN: 1,
    Severity.WARNING: 2,
    Severity.CRITICAL: 3,
}


def classify_state(state: str) -> tuple[Severity, bool]:
    """Return ``(severity, just_fixed)`` for a normalized state string."""
    value = (state or "").strip().lower()
    if value in ("success", "passed"):
        return Severity.OK, False
    if value == "fixed":
        return Severity.OK, True
    if value == "failed":
        return Severity.CRITICAL, False
    if value == "unknown":
        return Severity.UNKNOWN, False
    if value == "running":
        return Severity.WARNING, False
    if value:
        return Severity.WARNING, False
    return Severity.UNKNOWN, False


@dataclass(frozen=True)
class SourceConfig:
    kind: SourceKind
    identity: str
    token: str = ""
    username: str = ""
    password: str = ""
    uri: str = ""
    keyfile: str = ""
    # Optional; raises the GitHub rate limit for Travis repo listing.
    github_token: str = ""

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.identity}"

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if self.kind in (SourceKind.TRAVIS, SourceKind.CIRCLECI):
            if not self.token:
                missing.append("token")
            if not self.identity:
                missing.append("owner")
        elif self.kind is SourceKind.JENKINS:
            if not self.uri:
                missing.append("uri")
            if not self.username:
                missing.append("username")
            if not self.password:
                missing.append("password")
        elif self.kind is SourceKind.ANALYTICS:
            if not self.keyfile or not os.path.isfile(self.keyfile):
                missing.append("keyfile")
            if not self.identity:
                missing.append("view id")
        return missing

    @property
    def enabled(self) -> bool:
        return not self.missing_fields()

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "identity": self.identity, "enabled": self.enabled}


@dataclass(frozen=True)
class StatusRow:
    kind: SourceKind
    label: str
    sub_label: str = ""
    state: str = "unknown"
    timestamp: datetime | None = None
    values: tuple[str, ...] = ()

    # Severity is derived from state and is never stored.
    @property
    def severity(self) -> Severity:
        return classify_state(self.state)[0]

    @property
    def just_fixed(self) -> bool:
        return classify_state(self.state)[1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "sub_label": self.sub_label,
            "state": self.state,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "severity": self.severity.value,
            "just_fixed": self.just_fixed,
            "values": list(self.values),
        }


@dataclass(frozen=True)
class Panel:
    key: str
    kind: SourceKind
    title: str
    columns: tuple[str, ...]
    rows: tuple[StatusRow, ...]
    aside: tuple[tuple[str, str], ...] = ()

    @property
    def severity(self) -> Severity:
        if not self.rows:
            return Severity.OK
        return max((row.severity for row in self.rows), key=SEVERITY_RANK.__getitem__)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "kind": self.kind.value,
            "title": self.title,
            "severity": self.severity.value,
            "columns": list(self.columns),
            "rows": [row.to_dict() for row in self.rows],
            "aside": dict(self.aside),
        }


@dataclass(frozen=True)
class DashboardSnapshot:
    panels: tuple[Panel, ...]
    completed_at: datetime | None = None
    failed_sources: tuple[str, ...] = ()
    cycle: int = 0

    @classmethod
    def empty(cls) -> "DashboardSnapshot":
        return cls(panels=())

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle": self.cycle,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "failed_sources": list(self.failed_sources),
            "panels": [panel.to_dict() for panel in self.panels],
        }


@dataclass(frozen=True)
class DashConfig:
    interval_seconds: float = 120.0
    adapter_timeout: float = 30.0
    show_all_builds: bool = False
    max_analytics_rows: int = 10
    debug: bool = False
    log_file: str = ""
    sources: tuple[SourceConfig, ...] = field(default_factory=tuple)

    def enabled_sources(self) -> tuple[SourceConfig, ...]:
        return tuple(source for source in self.sources if source.enabled)
