"""Travis CI adapter: owner repos from GitHub, branch state from Travis."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from tdash_core.adapters import FetchContext, SourceAdapter, decode_json, get_json, request
from tdash_core.errors import MalformedResponse
from tdash_core.models import SourceKind

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
TRAVIS_API_URL = "https://api.travis-ci.com"
DEFAULT_BRANCH = "master"
PER_PAGE = 100


class TravisAdapter(SourceAdapter):
    kind = SourceKind.TRAVIS

    def _github_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.source.github_token:
            headers["Authorization"] = f"Bearer {self.source.github_token}"
        return headers

    def list_repos(self, ctx: FetchContext) -> list[dict[str, Any]]:
        """All source repos for the owner, following pagination to the end."""
        url: str | None = f"{GITHUB_API_URL}/users/{quote(self.source.identity)}/repos"
        params: dict[str, Any] | None = {"type": "sources", "per_page": PER_PAGE}
        repos: list[dict[str, Any]] = []
        while url:
            response = request(self.session, "GET", url, ctx, params=params, headers=self._github_headers())
            if response is None:
                return []
            page = decode_json(response)
            if not isinstance(page, list):
                raise MalformedResponse(f"expected repo list for {self.source.identity}")
            repos.extend(repo for repo in page if isinstance(repo, dict))
            url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            params = None
        return repos

    def branch_state(self, ctx: FetchContext, slug: str, branch: str) -> dict[str, Any] | None:
        payload = get_json(
            self.session,
            f"{TRAVIS_API_URL}/repo/{quote(slug, safe='')}/branch/{quote(branch, safe='')}",
            ctx,
            headers={
                "Travis-API-Version": "3",
                "Authorization": f"token {self.source.token}",
            },
        )
        if not isinstance(payload, dict):
            return None
        return payload.get("last_build") or {}

    def fetch(self, ctx: FetchContext) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for repo in self.list_repos(ctx):
            if repo.get("fork"):
                continue
            slug = repo.get("full_name")
            if not slug:
                continue
            branch = repo.get("default_branch") or DEFAULT_BRANCH
            build = self.branch_state(ctx, slug, branch)
            if build is None:
                # Repos that never built on Travis answer 404.
                continue
            rows.append(
                {
                    "repo": slug,
                    "branch": branch,
                    "state": build.get("state", ""),
                    "started_at": build.get("started_at"),
                    "finished_at": build.get("finished_at"),
                }
            )
        logger.debug("travis %s: %d branch states", self.source.identity, len(rows))
        return rows
