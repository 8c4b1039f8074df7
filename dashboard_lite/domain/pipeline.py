"""Calendar aggregation pipeline for dashboard_lite.

One run turns the stored configuration into an immutable AgendaSnapshot:

    config -> fetch+parse (all sources, settle-all) -> flatten -> deduplicate
           -> group by local day -> AgendaSnapshot

Usage:
    pipeline = CalendarAggregationPipeline(store, fetch_orchestrator)
    snapshot = await pipeline.run()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Optional

from dashboard_lite.calendar.lite_date_grouper import group_events_by_date
from dashboard_lite.calendar.lite_datetime_utils import compute_event_window
from dashboard_lite.calendar.lite_event_merger import LiteEventMerger
from dashboard_lite.calendar.lite_models import (
    AgendaSnapshot,
    CalendarSource,
    DayBucket,
    EventWindow,
    MergedEvent,
    RawEvent,
    SourceFailure,
    WindowConfig,
)
from dashboard_lite.core.timezone_utils import get_local_timezone, now_utc
from dashboard_lite.domain.config_store import DashboardConfigStore
from dashboard_lite.domain.fetch_orchestrator import FetchOrchestrator, SourceOutcome

logger = logging.getLogger(__name__)


@dataclass
class ProcessingContext:
    """Intermediate values of one pipeline run, filled in stage by stage."""

    now: datetime
    tz: tzinfo
    window_config: WindowConfig
    event_window: EventWindow
    sources: list[CalendarSource] = field(default_factory=list)
    outcomes: list[SourceOutcome] = field(default_factory=list)
    raw_events: list[RawEvent] = field(default_factory=list)
    failures: list[SourceFailure] = field(default_factory=list)
    merged_events: list[MergedEvent] = field(default_factory=list)
    buckets: dict[str, DayBucket] = field(default_factory=dict)
    parse_failures: int = 0


class CalendarAggregationPipeline:
    """Runs the fetch, merge and group stages and returns an AgendaSnapshot."""

    def __init__(
        self,
        store: DashboardConfigStore,
        fetch_orchestrator: FetchOrchestrator,
        merger: Optional[LiteEventMerger] = None,
        tz: Optional[tzinfo] = None,
        time_provider: Callable[[], datetime] = now_utc,
    ):
        """Initialize the pipeline.

        Args:
            store: Source of calendar feeds and the window config
            fetch_orchestrator: Concurrent fetch-and-parse stage
            merger: Deduplicator (a default instance when None)
            tz: Local timezone for windows and day keys (resolved when None)
            time_provider: Returns the current aware instant
        """
        self.store = store
        self.fetch_orchestrator = fetch_orchestrator
        self.merger = merger or LiteEventMerger()
        self.tz = tz or get_local_timezone()
        self.time_provider = time_provider

    def _prepare(self, now: Optional[datetime]) -> ProcessingContext:
        current = now or self.time_provider()
        window_config = self.store.get_window_config()
        return ProcessingContext(
            now=current,
            tz=self.tz,
            window_config=window_config,
            event_window=compute_event_window(current, window_config, self.tz),
            sources=[s for s in self.store.get_calendar_sources() if s.enabled],
        )

    async def _fetch(self, context: ProcessingContext) -> None:
        parser = self.fetch_orchestrator.parser
        parse_failures_before = parser.parse_failures

        context.outcomes = await self.fetch_orchestrator.fetch_all_sources(
            context.sources, context.event_window
        )
        context.parse_failures = parser.parse_failures - parse_failures_before

        for outcome in context.outcomes:
            if outcome.failure is not None:
                context.failures.append(outcome.failure)
            else:
                context.raw_events.extend(outcome.events)

    def _merge(self, context: ProcessingContext) -> None:
        context.merged_events = self.merger.deduplicate(context.raw_events)

    def _group(self, context: ProcessingContext) -> None:
        context.buckets = group_events_by_date(
            context.merged_events,
            context.window_config.past_weeks,
            context.window_config.future_months,
            context.now,
            context.tz,
        )

    async def run(self, now: Optional[datetime] = None) -> AgendaSnapshot:
        """Execute one aggregation cycle.

        Per-source failures are recorded in the snapshot and never abort the
        run. Configuration errors and bugs propagate.

        Args:
            now: Override for the current instant (time_provider when None)

        Returns:
            Freshly built AgendaSnapshot
        """
        context = self._prepare(now)
        logger.debug(
            "Aggregating %d enabled sources for %s..%s",
            len(context.sources),
            context.event_window.start,
            context.event_window.end,
        )

        await self._fetch(context)
        self._merge(context)
        self._group(context)

        snapshot = AgendaSnapshot(
            generated_at=context.now,
            window_start=context.event_window.start,
            window_end=context.event_window.end,
            buckets=context.buckets,
            failures=tuple(context.failures),
            sources_total=len(context.sources),
            sources_ok=len(context.sources) - len(context.failures),
            event_count=sum(len(bucket.events) for bucket in context.buckets.values()),
            parse_failures=context.parse_failures,
        )

        logger.info(
            "Aggregation complete: %d events from %d/%d sources (%d raw, %d merged)",
            snapshot.event_count,
            snapshot.sources_ok,
            snapshot.sources_total,
            len(context.raw_events),
            len(context.merged_events),
        )
        return snapshot
