"""Concurrent fetch-and-parse across all calendar sources."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from dashboard_lite.calendar.lite_fetcher import LiteICSFetcher, LiteICSFetchError
from dashboard_lite.calendar.lite_models import (
    CalendarSource,
    EventWindow,
    RawEvent,
    SourceFailure,
)
from dashboard_lite.calendar.lite_parser import LiteICSParser
from dashboard_lite.core.async_utils import AsyncOrchestrator, AsyncTimeoutError
from dashboard_lite.lite_logging import log_monitoring_event

logger = logging.getLogger(__name__)

SourceResult = Union[list[RawEvent], SourceFailure]


@dataclass(frozen=True)
class SourceOutcome:
    """One settled source: its events or the failure that replaced them."""

    source: CalendarSource
    result: SourceResult

    @property
    def ok(self) -> bool:
        return not isinstance(self.result, SourceFailure)

    @property
    def events(self) -> list[RawEvent]:
        return [] if isinstance(self.result, SourceFailure) else self.result

    @property
    def failure(self) -> Optional[SourceFailure]:
        return self.result if isinstance(self.result, SourceFailure) else None


class FetchOrchestrator:
    """Fetches and parses every source with bounded concurrency and per-source timeouts."""

    def __init__(
        self,
        fetcher: LiteICSFetcher,
        parser: LiteICSParser,
        fetch_concurrency: int = 4,
        fetch_timeout_seconds: float = 10.0,
        orchestrator: Optional[AsyncOrchestrator] = None,
    ):
        """Initialize fetch orchestrator.

        Args:
            fetcher: ICS fetcher used for every source
            parser: ICS parser used for every fetched body
            fetch_concurrency: Maximum number of sources in flight at once
            fetch_timeout_seconds: Bound on each source's fetch plus parse
            orchestrator: Async helper (a private one is created when None)
        """
        self.fetcher = fetcher
        self.parser = parser
        self.fetch_concurrency = max(1, fetch_concurrency)
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.orchestrator = orchestrator or AsyncOrchestrator(
            default_timeout=fetch_timeout_seconds
        )

    async def _fetch_and_parse(self, source: CalendarSource, window: EventWindow) -> list[RawEvent]:
        ics_text = await self.fetcher.fetch(source)
        events = self.parser.parse(ics_text, source, window)
        logger.debug("Source %r returned %d events", source.name, len(events))
        return events

    def _to_failure(self, source: CalendarSource, exc: BaseException) -> SourceFailure:
        if isinstance(exc, AsyncTimeoutError):
            message = f"Timed out after {self.fetch_timeout_seconds:g}s"
            status_code = None
        else:
            message = str(exc) or type(exc).__name__
            status_code = getattr(exc, "status_code", None)

        log_monitoring_event(
            "refresh.source.failed",
            f"Source {source.name!r} failed: {message}",
            "WARNING",
            details={"source_id": source.id, "status_code": status_code},
        )
        return SourceFailure(
            source_id=source.id,
            source_name=source.name,
            error=message,
            status_code=status_code,
        )

    async def fetch_all_sources(
        self, sources: list[CalendarSource], window: EventWindow
    ) -> list[SourceOutcome]:
        """Fetch and parse all sources, waiting until every one has settled.

        Fetch failures and timeouts become SourceFailure outcomes; they never
        affect other sources. Any other exception is a bug and is re-raised
        once all sources have settled.

        Args:
            sources: Sources to fetch (callers pass only enabled ones)
            window: Instant range handed to the parser

        Returns:
            One SourceOutcome per source, in input order
        """
        if not sources:
            logger.debug("No calendar sources to fetch")
            return []

        results = await self.orchestrator.settle_all(
            [self._fetch_and_parse(source, window) for source in sources],
            max_concurrent=self.fetch_concurrency,
            timeout=self.fetch_timeout_seconds,
        )

        outcomes: list[SourceOutcome] = []
        unexpected: Optional[BaseException] = None
        for source, result in zip(sources, results):
            if isinstance(result, (LiteICSFetchError, AsyncTimeoutError)):
                outcomes.append(SourceOutcome(source, self._to_failure(source, result)))
            elif isinstance(result, BaseException):
                logger.error(
                    "Unexpected error processing source %r", source.name, exc_info=result
                )
                unexpected = unexpected or result
            else:
                outcomes.append(SourceOutcome(source, result))

        if unexpected is not None:
            raise unexpected

        return outcomes

    def get_health_stats(self) -> dict:
        """Settle-all counters across every cycle run by this orchestrator."""
        return self.orchestrator.get_health_stats()
