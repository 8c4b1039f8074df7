"""Chronological day grouping for the agenda."""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from dashboard_lite.calendar.lite_datetime_utils import (
    date_key,
    local_date,
    local_date_key,
    window_date_range,
)
from dashboard_lite.calendar.lite_models import DayBucket, MergedEvent
from dashboard_lite.core.timezone_utils import get_local_timezone

logger = logging.getLogger(__name__)


def iter_window_dates(first: date, last: date) -> Iterable[date]:
    """Yield every calendar day from ``first`` through ``last`` inclusive."""
    day = first
    while day <= last:
        yield day
        day += timedelta(days=1)


def group_events_by_date(
    events: Iterable[MergedEvent],
    past_weeks: int,
    future_months: int,
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> dict[str, DayBucket]:
    """Bucket merged events into one DayBucket per local calendar day.

    Every day of the window gets a bucket, empty or not, keyed ``YYYY-MM-DD``
    and inserted in ascending date order. Within a bucket events keep their
    input order, which the deduplicator already sorted by start.

    Args:
        events: Deduplicated events
        past_weeks: Whole weeks before today to include
        future_months: Calendar months after today to include
        now: Current aware instant
        tz: Timezone that defines calendar days (local timezone when None)

    Returns:
        Ordered mapping of date key to DayBucket

    Raises:
        ValueError: If past_weeks or future_months is negative
    """
    tz = tz or get_local_timezone()
    today = local_date(now, tz)
    first, last = window_date_range(today, past_weeks, future_months)

    by_day: dict[str, list[MergedEvent]] = {
        date_key(day): [] for day in iter_window_dates(first, last)
    }

    dropped = 0
    for event in events:
        key = local_date_key(event.start_time, tz)
        bucket = by_day.get(key)
        if bucket is None:
            dropped += 1
            logger.debug("Event %r on %s falls outside the grouping window", event.title, key)
            continue
        bucket.append(event)

    if dropped:
        logger.debug("Dropped %d events outside %s..%s", dropped, first, last)

    return {
        key: DayBucket(
            date=date.fromisoformat(key),
            events=tuple(day_events),
            is_past=date.fromisoformat(key) < today,
        )
        for key, day_events in by_day.items()
    }
