"""In-process periodic sweep.

Runs the expiry sweep on a fixed interval inside the web process, next
to request traffic. A failed run is logged and counted; the loop keeps
going and the host process is never taken down by it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram

from tempshare.expiry.sweep import DEFAULT_SWEEP_CONCURRENCY, sweep
from tempshare.shared.logging.error_handler import log_structured_error
from tempshare.shared.trace_context import trace_context

if TYPE_CHECKING:
    from collections.abc import Callable

    from tempshare.ports.object_storage_port import ObjectStoragePort
    from tempshare.shared.types import SweepReport

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL = 30 * 60.0

SWEEP_RUNS = Counter(
    "tempshare_sweep_runs_total",
    "Expiry sweep runs by outcome",
    ["outcome"],
)

SWEEP_BUCKETS = Counter(
    "tempshare_sweep_buckets_total",
    "Bucket directories seen by the expiry sweep",
    ["result"],
)

SWEEP_DURATION = Histogram(
    "tempshare_sweep_duration_seconds",
    "Expiry sweep duration in seconds",
    buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
)


def record_report(report: SweepReport) -> None:
    """Publish a finished sweep's outcome as prometheus counters."""
    SWEEP_RUNS.labels(outcome="ok" if report.ok else "partial").inc()
    SWEEP_BUCKETS.labels(result="deleted").inc(len(report.deleted))
    SWEEP_BUCKETS.labels(result="retained").inc(len(report.retained))
    SWEEP_BUCKETS.labels(result="skipped").inc(len(report.skipped))
    SWEEP_BUCKETS.labels(result="failed").inc(len(report.failed))


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PeriodicSweeper:
    """Background asyncio task calling ``sweep`` every ``interval`` seconds."""

    def __init__(
        self,
        storage: ObjectStoragePort,
        *,
        interval: float = DEFAULT_SWEEP_INTERVAL,
        max_concurrency: int = DEFAULT_SWEEP_CONCURRENCY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._interval = interval
        self._max_concurrency = max_concurrency
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> SweepReport | None:
        """Run a single sweep; returns None when the run failed outright."""
        with trace_context(None) as trace_id, SWEEP_DURATION.time():
            try:
                report = await sweep(
                    self._storage,
                    self._clock(),
                    max_concurrency=self._max_concurrency,
                )
            except Exception as exc:
                SWEEP_RUNS.labels(outcome="error").inc()
                log_structured_error(logger, exc, trace_id=trace_id)
                return None
        record_report(report)
        return report

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="tempshare-sweep")
        logger.info("Periodic sweep started (every %.0fs)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Periodic sweep stopped")
