"""Jenkins adapter: last build of every job in one tree query."""

from __future__ import annotations

import logging
from typing import Any

from tdash_core.adapters import FetchContext, SourceAdapter, get_json
from tdash_core.errors import MalformedResponse
from tdash_core.models import SourceKind

logger = logging.getLogger(__name__)

JOBS_TREE = "jobs[name,displayName,lastBuild[number,timestamp,result,building]]"


class JenkinsAdapter(SourceAdapter):
    kind = SourceKind.JENKINS

    def fetch(self, ctx: FetchContext) -> list[dict[str, Any]]:
        base = self.source.uri.rstrip("/")
        payload = get_json(
            self.session,
            f"{base}/api/json",
            ctx,
            params={"tree": JOBS_TREE, "depth": 1},
            auth=(self.source.username, self.source.password),
        )
        if payload is None:
            return []
        if not isinstance(payload, dict):
            raise MalformedResponse(f"expected object from {base}/api/json")
        jobs = payload.get("jobs") or []
        logger.debug("jenkins %s: %d jobs", base, len(jobs))
        return list(jobs)
