"""Source adapter contract, fetch context and shared HTTP helpers."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from tdash_core.errors import FetchCancelled, MalformedResponse, TransientFetchError
from tdash_core.models import DashConfig, SourceConfig, SourceKind

logger = logging.getLogger(__name__)

USER_AGENT = "tdash/0.1"
REQUEST_TIMEOUT_CAP = 15.0
MIN_REQUEST_TIMEOUT = 0.5


@dataclass
class FetchContext:
    """Deadline plus cooperative cancellation token shared by one cycle."""

    deadline: float
    cancel: threading.Event = field(default_factory=threading.Event)
    clock: Any = time.monotonic

    @classmethod
    def with_timeout(cls, timeout: float, cancel: threading.Event | None = None) -> "FetchContext":
        return cls(deadline=time.monotonic() + timeout, cancel=cancel or threading.Event())

    def remaining(self) -> float:
        return self.deadline - self.clock()

    def check(self) -> None:
        if self.cancel.is_set():
            raise FetchCancelled("fetch cancelled")
        if self.remaining() <= 0:
            raise FetchCancelled("fetch deadline exceeded")

    def request_timeout(self) -> float:
        return max(MIN_REQUEST_TIMEOUT, min(REQUEST_TIMEOUT_CAP, self.remaining()))


def request(
    session: requests.Session,
    method: str,
    url: str,
    ctx: FetchContext,
    **kwargs: Any,
) -> requests.Response | None:
    """Perform one request; None means 404 (resource not found)."""
    ctx.check()
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    headers.update(kwargs.pop("headers", None) or {})
    try:
        response = session.request(method, url, headers=headers, timeout=ctx.request_timeout(), **kwargs)
    except requests.Timeout as exc:
        raise TransientFetchError(f"{method} {url} timed out") from exc
    except requests.RequestException as exc:
        raise TransientFetchError(f"{method} {url} failed: {exc}") from exc

    if response.status_code == 404:
        logger.debug("%s %s: not found", method, url)
        return None
    if response.status_code >= 400:
        raise TransientFetchError(f"{method} {url} responded with status {response.status_code}")
    return response


def decode_json(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise MalformedResponse(f"invalid JSON from {response.url}") from exc


def get_json(session: requests.Session, url: str, ctx: FetchContext, **kwargs: Any) -> Any:
    response = request(session, "GET", url, ctx, **kwargs)
    if response is None:
        return None
    return decode_json(response)


class SourceAdapter:
    """One configured source instance.

    Subclasses implement ``fetch`` returning a bounded list of raw rows and
    raise ``ConfigMissing``/``TransientFetchError``/``MalformedResponse``.
    """

    kind: SourceKind

    def __init__(self, source: SourceConfig, session: requests.Session | None = None):
        self.source = source
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    @property
    def key(self) -> str:
        return self.source.key

    def fetch(self, ctx: FetchContext) -> list[dict[str, Any]]:
        raise NotImplementedError


def adapter_for(source: SourceConfig, session: requests.Session | None = None) -> SourceAdapter:
    from tdash_core.adapters.analytics import AnalyticsAdapter
    from tdash_core.adapters.circleci import CircleCIAdapter
    from tdash_core.adapters.jenkins import JenkinsAdapter
    from tdash_core.adapters.travis import TravisAdapter

    classes = {
        SourceKind.TRAVIS: TravisAdapter,
        SourceKind.CIRCLECI: CircleCIAdapter,
        SourceKind.JENKINS: JenkinsAdapter,
        SourceKind.ANALYTICS: AnalyticsAdapter,
    }
    return classes[source.kind](source, session=session)


def build_adapters(config: DashConfig) -> list[SourceAdapter]:
    """Create adapters for enabled sources; log disabled ones once."""
    adapters: list[SourceAdapter] = []
    for source in config.sources:
        missing = source.missing_fields()
        if missing:
            logger.warning(
                "skipping %s source %r: missing %s",
                source.kind.value,
                source.identity,
                ", ".join(missing),
            )
            continue
        adapters.append(adapter_for(source))
    return adapters
