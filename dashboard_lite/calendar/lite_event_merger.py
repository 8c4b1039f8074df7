"""Cross-calendar event deduplication for dashboard_lite.

Two events are "the same" occurrence when their lower-cased titles and exact
start instants match, regardless of which feed reported them or their UIDs.
"""

import logging
from collections.abc import Iterable, Sequence

from dashboard_lite.calendar.lite_datetime_utils import epoch_millis
from dashboard_lite.calendar.lite_models import MergedEvent, RawEvent

logger = logging.getLogger(__name__)


def dedup_key(event: RawEvent) -> str:
    """Return ``lowercase(title) + "_" + start epoch millis``."""
    return f"{event.title.lower()}_{epoch_millis(event.start_time)}"


def _sources_of(event: RawEvent) -> tuple[str, ...]:
    if isinstance(event, MergedEvent) and event.calendar_sources:
        return event.calendar_sources
    return (event.source_calendar_name,)


class LiteEventMerger:
    """Collapses duplicate occurrences reported by several calendar feeds."""

    def deduplicate(self, events: Sequence[RawEvent]) -> list[MergedEvent]:
        """Merge events sharing a dedup key into one MergedEvent.

        The first event seen under a key wins every scalar field (title casing,
        end time, location, description, uid). Later events only contribute
        their source names to ``calendar_sources``, appended in encounter order
        without repeats. Already-merged input keeps its sources, so running the
        function on its own output changes nothing.

        Args:
            events: Events from all sources, in any order

        Returns:
            MergedEvents sorted by start time; ties keep encounter order
        """
        survivors: dict[str, RawEvent] = {}
        sources: dict[str, list[str]] = {}

        for event in events:
            key = dedup_key(event)
            if key not in survivors:
                survivors[key] = event
                sources[key] = list(dict.fromkeys(_sources_of(event)))
                continue

            seen = sources[key]
            for name in _sources_of(event):
                if name not in seen:
                    seen.append(name)

        merged = [
            self._to_merged(event, sources[key]) for key, event in survivors.items()
        ]
        # list.sort is stable, so equal start times keep first-seen order
        merged.sort(key=lambda e: e.start_time)

        if len(events) != len(merged):
            logger.debug("Merged %d events into %d unique occurrences", len(events), len(merged))

        return merged

    @staticmethod
    def _to_merged(event: RawEvent, calendar_sources: Iterable[str]) -> MergedEvent:
        data = event.model_dump(exclude={"calendar_sources"})
        return MergedEvent(**data, calendar_sources=tuple(calendar_sources))
