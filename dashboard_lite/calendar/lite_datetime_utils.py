"""DateTime utilities for calendar aggregation - dashboard_lite.

Covers iCalendar property conversion, agenda window arithmetic, local
calendar-day keys and display formatting.
"""

import logging
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from dashboard_lite.calendar.lite_models import EventWindow, WindowConfig
from dashboard_lite.core.timezone_utils import to_local

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def epoch_millis(dt: datetime) -> int:
    """Return milliseconds since the Unix epoch for an aware datetime.

    Integer timedelta division avoids float rounding on sub-second values.
    """
    return (dt - _EPOCH) // _ONE_MS


def local_date(instant: datetime, tz: tzinfo) -> date:
    """Return the calendar day of ``instant`` as seen in ``tz``."""
    return to_local(instant, tz).date()


def date_key(day: date) -> str:
    """Format a calendar day as ``YYYY-MM-DD``."""
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def local_date_key(instant: datetime, tz: tzinfo) -> str:
    """Return the ``YYYY-MM-DD`` key of the local day containing ``instant``.

    Always derived from local year/month/day, never from the UTC date: an
    event at 23:30 on Aug 26 in UTC-5 is keyed 2025-08-26 although its UTC
    instant falls on Aug 27.
    """
    return date_key(local_date(instant, tz))


def window_date_range(today: date, past_weeks: int, future_months: int) -> tuple[date, date]:
    """Return the inclusive first/last calendar days of the agenda window.

    Args:
        today: Local calendar day of "now"
        past_weeks: Whole weeks to look back
        future_months: Calendar months to look ahead

    Raises:
        ValueError: If either span is negative
    """
    if past_weeks < 0 or future_months < 0:
        raise ValueError(
            f"Window spans must be non-negative (past_weeks={past_weeks}, future_months={future_months})"
        )
    return today - timedelta(weeks=past_weeks), today + relativedelta(months=future_months)


def compute_event_window(now: datetime, window: WindowConfig, tz: tzinfo) -> EventWindow:
    """Compute the instant range used to filter parsed events.

    ``start = now - past_weeks * 7 days`` and ``end = now + future_months``
    calendar months. Month arithmetic is done on the local wall clock so
    "three months from now" lands on the same local time of day.

    Args:
        now: Current aware instant
        window: Configured window spans
        tz: Local timezone

    Returns:
        EventWindow with aware bounds
    """
    local_now = now.astimezone(tz)
    start = local_now - timedelta(weeks=window.past_weeks)
    end = local_now + relativedelta(months=window.future_months)
    return EventWindow(start=start, end=end)


def serialize_datetime_utc(dt: datetime) -> str:
    """Serialize datetime to ISO 8601 UTC string with Z suffix.

    Examples:
        >>> from datetime import datetime, timezone
        >>> serialize_datetime_utc(datetime(2024, 11, 4, 16, 30, tzinfo=timezone.utc))
        '2024-11-04T16:30:00Z'
    """
    dt_utc = dt.astimezone(UTC) if dt.tzinfo is not None else dt.replace(tzinfo=UTC)
    return dt_utc.isoformat().replace("+00:00", "Z")


def serialize_datetime_optional(dt: Optional[datetime]) -> Optional[str]:
    """Serialize optional datetime, returning None if input is None."""
    return serialize_datetime_utc(dt) if dt is not None else None


def format_time_12h(dt: datetime) -> str:
    """Format a wall-clock time as ``h:mm a`` / ``h:mm p`` without a leading zero.

    Examples:
        >>> format_time_12h(datetime(2025, 8, 26, 9, 5))
        '9:05 a'
        >>> format_time_12h(datetime(2025, 8, 26, 0, 30))
        '12:30 a'
        >>> format_time_12h(datetime(2025, 8, 26, 14, 0))
        '2:00 p'
    """
    hour = dt.hour % 12 or 12
    am_pm = "a" if dt.hour < 12 else "p"
    return f"{hour}:{dt.minute:02d} {am_pm}"


class LiteDateTimeParser:
    """Converts iCalendar date/datetime values into aware instants."""

    def __init__(self, local_tz: tzinfo):
        """Initialize datetime parser.

        Args:
            local_tz: Timezone applied to floating times and date-only values
        """
        self.local_tz = local_tz

    def to_instant(self, value: Any) -> datetime:
        """Convert a decoded DTSTART/DTEND value to an aware datetime.

        Date-only values become local midnight; naive (floating) datetimes are
        interpreted in the local timezone.

        Raises:
            TypeError: If the value is neither a date nor a datetime
        """
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=self.local_tz)
            return value
        if isinstance(value, date):
            return datetime.combine(value, time.min, tzinfo=self.local_tz)
        raise TypeError(f"Unsupported iCalendar date value: {value!r}")

    def parse_property(self, dt_prop: Any) -> Optional[datetime]:
        """Parse an optional iCalendar date property (``vDDDTypes``) to an instant."""
        if dt_prop is None:
            return None
        return self.to_instant(getattr(dt_prop, "dt", dt_prop))

    @staticmethod
    def is_date_only(dt_prop: Any) -> bool:
        """Check whether a DTSTART property carries no time-of-day component."""
        value = getattr(dt_prop, "dt", dt_prop)
        return isinstance(value, date) and not isinstance(value, datetime)
