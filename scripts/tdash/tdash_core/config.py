"""Configuration resolution: CLI flags, JSON config file and environment."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

from tdash_core.formatting import parse_duration
from tdash_core.models import DashConfig, SourceConfig, SourceKind

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 120.0
MIN_INTERVAL_SECONDS = 5.0
DEFAULT_ADAPTER_TIMEOUT = 30.0
# Fraction of the interval an adapter may use before its slot resolves empty.
MAX_TIMEOUT_SHARE = 0.8
DEFAULT_MAX_ANALYTICS_ROWS = 10


def dash_dir(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    if env.get("TDASH_DIR"):
        return Path(env["TDASH_DIR"])
    return Path.home() / ".tdash"


def load_user_config(path: str | None) -> dict:
    if not path:
        return {}

    config_path = Path(path)
    if not config_path.exists():
        raise ValueError(f"config path not found: {config_path}")

    try:
        payload = json.loads(config_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON config: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("config file must contain a JSON object")
    return payload


def _pick(flag: Any, user: Mapping[str, Any], key: str, env: Mapping[str, str], env_key: str | None, default: Any) -> Any:
    if flag not in (None, [], ""):
        return flag
    if user.get(key) not in (None, [], ""):
        return user[key]
    if env_key and env.get(env_key):
        return env[env_key]
    return default


def _as_list(value: Any) -> list[str]:
    if value in (None, ""):
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(item) for item in value if str(item).strip()]


def clamp_interval(seconds: float) -> float:
    if seconds < MIN_INTERVAL_SECONDS:
        logger.warning(
            "refresh interval %.1fs is below the %.0fs minimum; using the minimum",
            seconds,
            MIN_INTERVAL_SECONDS,
        )
        return MIN_INTERVAL_SECONDS
    return seconds


def check_max_rows(value: Any) -> int:
    try:
        rows = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"max_analytics_rows must be an integer, got {value!r}") from exc
    if rows < 1:
        raise ValueError(f"max_analytics_rows must be at least 1, got {rows}")
    return rows


def clamp_timeout(timeout: float, interval: float) -> float:
    ceiling = interval * MAX_TIMEOUT_SHARE
    if timeout <= 0 or timeout > ceiling:
        return ceiling
    return timeout


def build_sources(values: Mapping[str, Any]) -> tuple[SourceConfig, ...]:
    """Ordered sources: analytics views, Travis owners, CircleCI owners, Jenkins."""
    sources: list[SourceConfig] = []

    keyfile = str(values.get("ga_keyfile") or "")
    view_ids = _as_list(values.get("ga_view_ids"))
    if view_ids:
        sources.extend(SourceConfig(kind=SourceKind.ANALYTICS, identity=v, keyfile=keyfile) for v in view_ids)
    elif keyfile and Path(keyfile).is_file():
        sources.append(SourceConfig(kind=SourceKind.ANALYTICS, identity="", keyfile=keyfile))

    github_token = str(values.get("github_token") or "")
    for kind, token_key, owners_key in (
        (SourceKind.TRAVIS, "travis_token", "travis_owners"),
        (SourceKind.CIRCLECI, "circleci_token", "circleci_owners"),
    ):
        token = str(values.get(token_key) or "")
        extra = {"github_token": github_token} if kind is SourceKind.TRAVIS else {}
        owners = _as_list(values.get(owners_key))
        if owners:
            sources.extend(SourceConfig(kind=kind, identity=owner, token=token, **extra) for owner in owners)
        elif token:
            sources.append(SourceConfig(kind=kind, identity="", token=token, **extra))

    uri = str(values.get("jenkins_uri") or "")
    username = str(values.get("jenkins_username") or "")
    password = str(values.get("jenkins_password") or "")
    if uri or username or password:
        sources.append(
            SourceConfig(
                kind=SourceKind.JENKINS,
                identity=uri,
                uri=uri,
                username=username,
                password=password,
            )
        )
    return tuple(sources)


def resolve_config(args: argparse.Namespace, env: Mapping[str, str] | None = None) -> DashConfig:
    env = os.environ if env is None else env
    user = load_user_config(getattr(args, "config", None))
    base_dir = dash_dir(env)

    interval = clamp_interval(
        parse_duration(_pick(args.interval, user, "interval", env, None, DEFAULT_INTERVAL_SECONDS))
    )
    timeout = clamp_timeout(
        parse_duration(_pick(args.timeout, user, "adapter_timeout", env, None, DEFAULT_ADAPTER_TIMEOUT)),
        interval,
    )

    values = {
        "ga_keyfile": _pick(args.ga_keyfile, user, "ga_keyfile", env, None, str(base_dir / "ga.json")),
        "ga_view_ids": _pick(args.ga_viewid, user, "ga_view_ids", env, None, []),
        "travis_token": _pick(args.travis_token, user, "travis_token", env, "TRAVISCI_API_TOKEN", ""),
        "travis_owners": _pick(args.travis_owner, user, "travis_owners", env, None, []),
        "github_token": _pick(args.github_token, user, "github_token", env, "GITHUB_TOKEN", ""),
        "circleci_token": _pick(args.circleci_token, user, "circleci_token", env, "CIRCLECI_TOKEN", ""),
        "circleci_owners": _pick(args.circleci_owner, user, "circleci_owners", env, None, []),
        "jenkins_uri": _pick(args.jenkins_uri, user, "jenkins_uri", env, "JENKINS_BASE_URI", ""),
        "jenkins_username": _pick(args.jenkins_username, user, "jenkins_username", env, "JENKINS_USERNAME", ""),
        "jenkins_password": _pick(args.jenkins_password, user, "jenkins_password", env, "JENKINS_PASSWORD", ""),
    }

    show_all = bool(args.all) or bool(user.get("show_all_builds", False))
    log_file = _pick(getattr(args, "log_file", None), user, "log_file", env, None, str(base_dir / "tdash.log"))

    return DashConfig(
        interval_seconds=interval,
        adapter_timeout=timeout,
        show_all_builds=show_all,
        max_analytics_rows=check_max_rows(user.get("max_analytics_rows", DEFAULT_MAX_ANALYTICS_ROWS)),
        debug=bool(getattr(args, "debug", False)) or bool(user.get("debug", False)),
        log_file=str(log_file),
        sources=build_sources(values),
    )
