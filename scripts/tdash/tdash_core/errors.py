"""Error taxonomy for source fetching and dashboard startup.

Classification:
 - ConfigMissing: required configuration absent; the source is disabled and
   never retried.
 - TransientFetchError: network failure, timeout or non-404 HTTP error; the
   source contributes no panel this cycle and the next tick retries.
 - FetchCancelled: the cycle's cancellation token fired mid-fetch.
 - MalformedResponse: payload could not be decoded or classified.
 - FatalError: the display itself is unusable (terminal init failure);
   surfaces to the process boundary.
"""

from __future__ import annotations


class DashError(Exception):
    """Base dashboard error (do not raise directly)."""


class ConfigMissing(DashError):
    """Required source configuration is absent."""


class TransientFetchError(DashError):
    """Retryable fetch failure."""


class FetchCancelled(TransientFetchError):
    """Fetch abandoned because its cycle was cancelled or timed out."""


class MalformedResponse(DashError):
    """Upstream payload could not be interpreted."""


class FatalError(DashError):
    """Unrecoverable failure that stops the process."""


__all__ = [
    "DashError",
    "ConfigMissing",
    "TransientFetchError",
    "FetchCancelled",
    "MalformedResponse",
    "FatalError",
]
