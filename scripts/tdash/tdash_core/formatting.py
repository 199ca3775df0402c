"""Shared text, duration and time formatting helpers."""

from __future__ import annotations

import re
from datetime import datetime, timezone

DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
DURATION_UNITS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

GA_PREFIX = "ga:"


def parse_duration(value: str | float | int) -> float:
    """Parse ``"90"``, ``"10s"``, ``"2m"`` or ``"1h30m"`` into seconds."""
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip().lower()
    if not text:
        raise ValueError("empty duration")
    try:
        return float(text)
    except ValueError:
        pass

    pos = 0
    total = 0.0
    for match in DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return total


def format_duration(seconds: float) -> str:
    sec = int(seconds)
    if sec < 60:
        return f"{sec}s"
    if sec < 3600:
        rest = sec % 60
        return f"{sec // 60}m{rest:02d}s" if rest else f"{sec // 60}m"
    return f"{sec // 3600}h {(sec % 3600) // 60:02d}m"


def parse_iso_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def from_epoch_millis(value: int | float | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def display_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def clean_header(name: str) -> str:
    """``ga:pagePath`` -> ``PAGEPATH``."""
    text = str(name)
    if text.startswith(GA_PREFIX):
        text = text[len(GA_PREFIX):]
    return text.upper()
