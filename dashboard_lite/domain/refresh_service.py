"""Agenda refresh service: snapshot holder, refresh coalescing and timer loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from dashboard_lite.calendar.lite_models import DEFAULT_REFRESH_INTERVAL_MS, AgendaSnapshot
from dashboard_lite.core.health_tracker import HealthTracker
from dashboard_lite.domain.config_store import ConfigStoreError, DashboardConfigStore
from dashboard_lite.domain.pipeline import CalendarAggregationPipeline
from dashboard_lite.lite_logging import log_monitoring_event

logger = logging.getLogger(__name__)


class AgendaRefreshService:
    """Owns the latest AgendaSnapshot and decides when the pipeline runs.

    The snapshot is replaced by a single attribute assignment once a cycle has
    fully completed, so readers see either the previous snapshot or the new
    one. At most one cycle runs at a time: a refresh requested while one is in
    flight waits for that cycle instead of starting another.
    """

    def __init__(
        self,
        pipeline: CalendarAggregationPipeline,
        store: DashboardConfigStore,
        health_tracker: Optional[HealthTracker] = None,
    ):
        self.pipeline = pipeline
        self.store = store
        self.health_tracker = health_tracker or HealthTracker()

        self._snapshot: Optional[AgendaSnapshot] = None
        self._in_flight: Optional[asyncio.Task[AgendaSnapshot]] = None
        self.cycles_started = 0
        self.coalesced_requests = 0
        self.skipped_ticks = 0

    @property
    def snapshot(self) -> Optional[AgendaSnapshot]:
        """Latest completed snapshot, or None before the first cycle finishes."""
        return self._snapshot

    @property
    def is_refreshing(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    async def _run_cycle(self) -> AgendaSnapshot:
        self.health_tracker.record_refresh_attempt()
        log_monitoring_event("refresh.cycle.start", "Starting refresh cycle", "DEBUG")

        snapshot = await self.pipeline.run()
        self._snapshot = snapshot

        self.health_tracker.record_refresh_success(
            snapshot.event_count,
            source_failures=len(snapshot.failures),
            parse_failures=snapshot.parse_failures,
        )
        log_monitoring_event(
            "refresh.cycle.complete",
            f"Refresh cycle complete: {snapshot.event_count} events",
            "INFO" if not snapshot.failures else "WARNING",
            details={
                "sources_total": snapshot.sources_total,
                "sources_ok": snapshot.sources_ok,
                "failed_sources": [f.source_name for f in snapshot.failures],
            },
        )
        return snapshot

    def _on_cycle_done(self, task: asyncio.Task[AgendaSnapshot]) -> None:
        if self._in_flight is task:
            self._in_flight = None
        if task.cancelled():
            logger.debug("Refresh cycle cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Refresh cycle failed", exc_info=exc)

    def _start_cycle(self) -> asyncio.Task[AgendaSnapshot]:
        task = asyncio.create_task(self._run_cycle(), name="agenda-refresh")
        task.add_done_callback(self._on_cycle_done)
        self._in_flight = task
        self.cycles_started += 1
        return task

    async def refresh(self) -> AgendaSnapshot:
        """Run a refresh cycle, or join the one already in flight.

        Cancelling the caller does not cancel the shared cycle.

        Returns:
            The snapshot produced by the cycle that was awaited

        Raises:
            Exception: Whatever the pipeline raised (configuration errors, bugs)
        """
        task = self._in_flight
        if task is None or task.done():
            task = self._start_cycle()
        else:
            self.coalesced_requests += 1
            logger.debug("Refresh already in flight; joining it")
        return await asyncio.shield(task)

    def tick(self) -> bool:
        """Start a timer-driven cycle unless one is still in flight.

        Returns:
            True if a cycle was started, False if the tick was skipped
        """
        if self.is_refreshing:
            self.skipped_ticks += 1
            logger.debug("Refresh still in flight; skipping timer tick")
            return False
        self._start_cycle()
        return True

    def get_interval_seconds(self) -> float:
        """Refresh period from the dashboard config, re-read on every call."""
        try:
            return self.store.get_refresh_interval_seconds()
        except ConfigStoreError as e:
            logger.warning("Cannot read refresh interval, using default: %s", e)
            return DEFAULT_REFRESH_INTERVAL_MS / 1000.0

    async def run_periodic(self, stop_event: asyncio.Event) -> None:
        """Background refresher: immediate cycle, then one tick per interval.

        Runs until ``stop_event`` is set. CancelledError propagates.
        """
        logger.info("Starting refresh loop")
        while not stop_event.is_set():
            self.tick()
            self.health_tracker.record_background_heartbeat()

            interval = self.get_interval_seconds()
            logger.debug("Sleeping %.1f seconds until next refresh tick", interval)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=interval)

        logger.info("Refresh loop stopped")

    async def stop(self) -> None:
        """Cancel the in-flight cycle, if any, and wait for it to finish."""
        task = self._in_flight
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait([task])
