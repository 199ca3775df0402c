"""Refresh scheduler: timer, concurrent fan-out, barrier and publish.

State machine::

    IDLE -> FETCHING -> PUBLISHING -> IDLE
      \\________ stop() ________/ -> STOPPED

Only one cycle is outstanding at a time. Triggers that arrive while a cycle
is FETCHING or PUBLISHING are dropped; the next timer tick re-triggers.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Sequence

from tdash_core.adapters import FetchContext, SourceAdapter
from tdash_core.errors import ConfigMissing, DashError
from tdash_core.models import DashboardSnapshot, DashConfig
from tdash_core.panel_builder import FetchOutcome, build_snapshot

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PUBLISHING = "publishing"
    STOPPED = "stopped"


class SnapshotSlot:
    """Single-slot handoff between the scheduler and the render loop.

    The scheduler is the only writer. Readers get the latest snapshot and a
    version number; intermediate snapshots may be skipped.
    """

    def __init__(self, initial: DashboardSnapshot | None = None):
        self._cond = threading.Condition()
        self._version = 0
        self._snapshot = initial or DashboardSnapshot.empty()

    def publish(self, snapshot: DashboardSnapshot) -> int:
        with self._cond:
            self._version += 1
            self._snapshot = snapshot
            self._cond.notify_all()
            return self._version

    def latest(self) -> tuple[int, DashboardSnapshot]:
        with self._cond:
            return self._version, self._snapshot

    def wait_newer(self, version: int, timeout: float | None = None) -> tuple[int, DashboardSnapshot]:
        with self._cond:
            self._cond.wait_for(lambda: self._version > version, timeout=timeout)
            return self._version, self._snapshot


class RefreshScheduler:
    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        config: DashConfig,
        slot: SnapshotSlot | None = None,
    ):
        self.adapters = list(adapters)
        self.config = config
        self.slot = slot or SnapshotSlot()
        self._lock = threading.Lock()
        self._state = SchedulerState.IDLE
        self._stop = threading.Event()
        self._cancel: threading.Event | None = None
        self._disabled: set[str] = set()
        self._cycle = 0
        self._timer: threading.Thread | None = None
        # Abandoned fetches from a timed-out cycle may still hold a worker.
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, 2 * len(self.adapters)),
            thread_name_prefix="tdash-fetch",
        )

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    @property
    def disabled(self) -> frozenset[str]:
        return frozenset(self._disabled)

    def _begin_cycle(self) -> bool:
        with self._lock:
            if self._state is not SchedulerState.IDLE:
                return False
            self._state = SchedulerState.FETCHING
            self._cancel = threading.Event()
            return True

    def trigger(self, reason: str = "tick") -> bool:
        """Start a background cycle; False when coalesced or stopped."""
        if not self._begin_cycle():
            logger.debug("refresh trigger %r coalesced (state=%s)", reason, self.state.value)
            return False
        logger.debug("refresh cycle started by %s", reason)
        worker = threading.Thread(target=self._run_started_cycle, name="tdash-cycle", daemon=True)
        worker.start()
        return True

    def request_refresh(self) -> bool:
        return self.trigger("refresh")

    def run_cycle(self) -> DashboardSnapshot | None:
        """Run one cycle on the calling thread and return what was published."""
        if not self._begin_cycle():
            return None
        return self._run_started_cycle()

    def _run_started_cycle(self) -> DashboardSnapshot | None:
        started = time.monotonic()
        cancel = self._cancel or threading.Event()
        try:
            outcomes = self._fetch_all(cancel)
            with self._lock:
                if self._state is SchedulerState.STOPPED:
                    return None
                self._state = SchedulerState.PUBLISHING
                self._cycle += 1
                cycle = self._cycle

            snapshot = build_snapshot(
                outcomes,
                show_all_builds=self.config.show_all_builds,
                max_analytics_rows=self.config.max_analytics_rows,
                cycle=cycle,
            )
            self.slot.publish(snapshot)
            logger.info(
                "cycle %d published %d panels in %.2fs (%d failed sources)",
                cycle,
                len(snapshot.panels),
                time.monotonic() - started,
                len(snapshot.failed_sources),
            )
            return snapshot
        finally:
            cancel.set()
            with self._lock:
                if self._state is not SchedulerState.STOPPED:
                    self._state = SchedulerState.IDLE

    def _fetch_all(self, cancel: threading.Event) -> list[FetchOutcome]:
        active = [adapter for adapter in self.adapters if adapter.key not in self._disabled]
        if not active:
            return []
        timeout = self.config.adapter_timeout
        ctx = FetchContext.with_timeout(timeout, cancel)
        try:
            futures = [self._executor.submit(adapter.fetch, ctx) for adapter in active]
        except RuntimeError:
            # Executor already shut down by stop().
            return []

        _, pending = wait(futures, timeout=timeout)
        if pending:
            cancel.set()
        return [
            self._settle(adapter, future, timed_out=future in pending)
            for adapter, future in zip(active, futures)
        ]

    def _settle(self, adapter: SourceAdapter, future: Future, timed_out: bool = False) -> FetchOutcome:
        source = adapter.source
        if timed_out:
            future.cancel()
            logger.warning("%s timed out after %.1fs", adapter.key, self.config.adapter_timeout)
            return FetchOutcome(source=source, error="timed out")
        try:
            rows = future.result()
        except ConfigMissing as exc:
            self._disabled.add(adapter.key)
            logger.warning("disabling %s: %s", adapter.key, exc)
            return FetchOutcome(source=source, error=str(exc))
        except DashError as exc:
            logger.warning("%s fetch failed: %s", adapter.key, exc)
            return FetchOutcome(source=source, error=str(exc))
        except Exception as exc:
            logger.exception("unexpected error fetching %s", adapter.key)
            return FetchOutcome(source=source, error=str(exc) or type(exc).__name__)
        return FetchOutcome(source=source, raw_rows=tuple(rows or ()))

    def start(self) -> None:
        """Kick off an immediate cycle and then one per interval."""
        if self._timer is not None:
            return
        self._timer = threading.Thread(target=self._tick_loop, name="tdash-timer", daemon=True)
        self._timer.start()

    def _tick_loop(self) -> None:
        self.trigger("startup")
        while not self._stop.wait(self.config.interval_seconds):
            self.trigger("tick")

    def stop(self) -> None:
        """Stop the timer and abandon in-flight fetches cooperatively."""
        with self._lock:
            self._state = SchedulerState.STOPPED
        self._stop.set()
        if self._cancel is not None:
            self._cancel.set()
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.debug("scheduler stopped after %d cycles", self._cycle)
