"""CircleCI adapter (v1.1 API)."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from tdash_core.adapters import FetchContext, SourceAdapter, get_json
from tdash_core.errors import MalformedResponse
from tdash_core.models import SourceKind

logger = logging.getLogger(__name__)

CIRCLECI_API_URL = "https://circleci.com/api/v1.1"
DEFAULT_BRANCH = "master"


class CircleCIAdapter(SourceAdapter):
    kind = SourceKind.CIRCLECI

    def _headers(self) -> dict[str, str]:
        return {"Circle-Token": self.source.token}

    def list_projects(self, ctx: FetchContext) -> list[dict[str, Any]]:
        payload = get_json(self.session, f"{CIRCLECI_API_URL}/projects", ctx, headers=self._headers())
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise MalformedResponse("expected project list from CircleCI")
        owner = self.source.identity
        return [p for p in payload if isinstance(p, dict) and p.get("username") == owner]

    def latest_build(self, ctx: FetchContext, project: dict[str, Any]) -> dict[str, Any] | None:
        branch = project.get("default_branch") or DEFAULT_BRANCH
        url = (
            f"{CIRCLECI_API_URL}/project/github/{quote(str(project.get('username', '')))}"
            f"/{quote(str(project.get('reponame', '')))}/tree/{quote(branch, safe='')}"
        )
        builds = get_json(self.session, url, ctx, params={"limit": 1}, headers=self._headers())
        if not builds or not isinstance(builds, list):
            return None
        return builds[0] if isinstance(builds[0], dict) else None

    def fetch(self, ctx: FetchContext) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for project in self.list_projects(ctx):
            build = self.latest_build(ctx, project)
            if build is None:
                continue
            rows.append(
                {
                    "reponame": build.get("reponame") or project.get("reponame"),
                    "branch": build.get("branch", ""),
                    "status": build.get("status", ""),
                    "start_time": build.get("start_time"),
                    "stop_time": build.get("stop_time"),
                }
            )
        logger.debug("circleci %s: %d builds", self.source.identity, len(rows))
        return rows
