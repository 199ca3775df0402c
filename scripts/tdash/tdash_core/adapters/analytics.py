"""Google Analytics adapter (Reporting API v4 plus v3 realtime/management).

Authentication uses a service-account JSON keyfile. Create one in the Google
Cloud console under "Credentials" and grant the service account read access
to each view.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from tdash_core.adapters import FetchContext, SourceAdapter, decode_json, get_json, request
from tdash_core.errors import ConfigMissing, MalformedResponse, TransientFetchError
from tdash_core.models import SourceConfig, SourceKind

logger = logging.getLogger(__name__)

READONLY_SCOPE = "https://www.googleapis.com/auth/analytics.readonly"
REPORTING_URL = "https://analyticsreporting.googleapis.com/v4/reports:batchGet"
REALTIME_URL = "https://www.googleapis.com/analytics/v3/data/realtime"
PROFILES_URL = "https://www.googleapis.com/analytics/v3/management/accounts/~all/webproperties/~all/profiles"
GA_PREFIX = "ga:"
ACTIVE_USERS_METRIC = "rt:activeUsers"


def report_request(view_id: str) -> dict[str, Any]:
    return {
        "reportRequests": [
            {
                "viewId": view_id,
                "dateRanges": [{"startDate": "7daysAgo", "endDate": "today"}],
                "metrics": [
                    {"expression": "ga:sessions"},
                    {"expression": "ga:pageviews"},
                    {"expression": "ga:uniquePageviews"},
                    {"expression": "ga:users"},
                ],
                "dimensions": [{"name": "ga:pagePath"}],
                "orderBys": [
                    {"fieldName": "ga:sessions", "sortOrder": "DESCENDING"},
                    {"fieldName": "ga:pageviews", "sortOrder": "DESCENDING"},
                ],
            }
        ]
    }


class AnalyticsAdapter(SourceAdapter):
    kind = SourceKind.ANALYTICS

    def __init__(self, source: SourceConfig, session: requests.Session | None = None):
        super().__init__(source, session=session)
        self._view_name: str | None = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            try:
                credentials = service_account.Credentials.from_service_account_file(
                    self.source.keyfile,
                    scopes=[READONLY_SCOPE],
                )
            except (OSError, ValueError) as exc:
                raise ConfigMissing(f"reading keyfile {self.source.keyfile!r} failed: {exc}") from exc
            self._session = AuthorizedSession(credentials)
        return self._session

    def view_name(self, ctx: FetchContext) -> str:
        if self._view_name is not None:
            return self._view_name
        view_id = self.source.identity
        payload = get_json(self.session, PROFILES_URL, ctx)
        items = payload.get("items") if isinstance(payload, dict) else None
        name = view_id
        for profile in items or []:
            if isinstance(profile, dict) and str(profile.get("id")) == view_id:
                name = str(profile.get("name") or view_id)
                break
        self._view_name = name
        return name

    def report(self, ctx: FetchContext) -> dict[str, Any]:
        response = request(self.session, "POST", REPORTING_URL, ctx, json=report_request(self.source.identity))
        if response is None:
            return {}
        payload = decode_json(response)
        reports = payload.get("reports") if isinstance(payload, dict) else None
        if not reports:
            raise MalformedResponse(f"no report returned for view {self.source.identity}")
        return reports[0]

    def active_users(self, ctx: FetchContext) -> str:
        payload = get_json(
            self.session,
            REALTIME_URL,
            ctx,
            params={"ids": GA_PREFIX + self.source.identity, "metrics": ACTIVE_USERS_METRIC},
        )
        totals = payload.get("totalsForAllResults") if isinstance(payload, dict) else None
        totals = totals or {}
        return str(totals.get(ACTIVE_USERS_METRIC, "0"))

    def fetch(self, ctx: FetchContext) -> list[dict[str, Any]]:
        try:
            return [
                {
                    "view_id": self.source.identity,
                    "name": self.view_name(ctx),
                    "report": self.report(ctx),
                    "active_users": self.active_users(ctx),
                }
            ]
        except GoogleAuthError as exc:
            raise TransientFetchError(f"analytics auth for view {self.source.identity} failed: {exc}") from exc
