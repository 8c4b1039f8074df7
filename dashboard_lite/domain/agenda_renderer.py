"""View-model rendering for the agenda and the month picker.

Produces plain JSON-ready dicts; presentation (HTML, CSS) lives in the
dashboard front end.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Optional

from dashboard_lite.calendar.lite_datetime_utils import (
    date_key,
    format_time_12h,
    local_date,
    serialize_datetime_optional,
    serialize_datetime_utc,
)
from dashboard_lite.calendar.lite_models import DayBucket, MergedEvent
from dashboard_lite.core.timezone_utils import get_local_timezone

logger = logging.getLogger(__name__)

WEEKDAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
MONTH_GRID_CELLS = 42

DEFAULT_CALENDAR_COLOR = "#6b7280"
CALENDAR_COLORS: dict[str, str] = {
    "USA Federal Holidays": "#ef4444",
    "UK Bank Holidays": "#3b82f6",
    "Personal": "#8b5cf6",
    "Work": "#f59e0b",
}


def calendar_color(calendar_name: Optional[str]) -> str:
    """Chip/dot colour for a calendar name."""
    if calendar_name is None:
        return DEFAULT_CALENDAR_COLOR
    return CALENDAR_COLORS.get(calendar_name, DEFAULT_CALENDAR_COLOR)


def format_day_label(day: date, today: date) -> str:
    """Return "Today", "Tomorrow", or e.g. "Mon Aug 26"."""
    if day == today:
        return "Today"
    if day == today + timedelta(days=1):
        return "Tomorrow"
    return f"{WEEKDAY_ABBR[day.weekday()]} {MONTH_ABBR[day.month - 1]} {day.day}"


def is_full_day_span(event: MergedEvent, tz: tzinfo) -> bool:
    """True for a timed event running exactly local midnight to midnight (24 h)."""
    if event.end_time is None:
        return False
    start = event.start_time.astimezone(tz)
    end = event.end_time.astimezone(tz)
    return (
        start.time() == time.min
        and end.time() == time.min
        and end - start == timedelta(hours=24)
    )


def format_event_time(event: MergedEvent, tz: tzinfo) -> str:
    """Return the time column text for an event.

    Empty for all-day events. Otherwise the 12-hour start time, followed by
    " to <end>" when the event ends in a different hour than it starts.
    """
    if event.all_day or is_full_day_span(event, tz):
        return ""

    start = event.start_time.astimezone(tz)
    start_text = format_time_12h(start)
    if event.end_time is None:
        return start_text

    end = event.end_time.astimezone(tz)
    if start.hour == end.hour:
        return start_text
    return f"{start_text} to {format_time_12h(end)}"


def render_event(event: MergedEvent, tz: tzinfo) -> dict[str, Any]:
    sources = sorted(event.calendar_sources or (event.source_calendar_name,))
    return {
        "title": event.title,
        "timeText": format_event_time(event, tz),
        "location": event.location,
        "calendarSources": sources,
        "chips": [{"name": name, "color": calendar_color(name)} for name in sources],
        "allDay": event.all_day or is_full_day_span(event, tz),
        "startIso": serialize_datetime_utc(event.start_time),
        "endIso": serialize_datetime_optional(event.end_time),
    }


def _accent_source(bucket: DayBucket) -> Optional[str]:
    for event in bucket.events:
        for name in event.calendar_sources or (event.source_calendar_name,):
            return name
    return None


def render_agenda(
    buckets: Mapping[str, DayBucket],
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> list[dict[str, Any]]:
    """Render ordered day buckets into agenda day dicts.

    Args:
        buckets: Ordered date key to DayBucket mapping from the grouper
        now: Current aware instant (decides "Today"/"Tomorrow")
        tz: Local timezone (resolved when None)

    Returns:
        One dict per bucket, in bucket order
    """
    tz = tz or get_local_timezone()
    today = local_date(now, tz)

    days = []
    for key, bucket in buckets.items():
        accent = _accent_source(bucket)
        days.append(
            {
                "dateKey": key,
                "label": format_day_label(bucket.date, today),
                "isToday": bucket.date == today,
                "isPast": bucket.is_past,
                "accentSource": accent,
                "accentColor": calendar_color(accent) if accent else None,
                "events": [render_event(event, tz) for event in bucket.events],
            }
        )
    return days


def render_month_grid(
    year: int,
    month: int,
    events: Iterable[MergedEvent],
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> dict[str, Any]:
    """Render a six-week, Sunday-first month picker grid.

    Args:
        year: Calendar year
        month: Month number 1-12
        events: Events used to flag days (``hasEvents``)
        now: Current aware instant (decides ``isToday``)
        tz: Local timezone (resolved when None)

    Returns:
        Dict with ``year``, ``month``, ``monthName`` and 42 ``cells``

    Raises:
        ValueError: If month is outside 1-12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")

    tz = tz or get_local_timezone()
    today = local_date(now, tz)
    event_days = {local_date(event.start_time, tz) for event in events}

    first = date(year, month, 1)
    # date.weekday() is Monday=0; shift so the grid starts on Sunday
    grid_start = first - timedelta(days=(first.weekday() + 1) % 7)

    cells = []
    for offset in range(MONTH_GRID_CELLS):
        day = grid_start + timedelta(days=offset)
        cells.append(
            {
                "dateKey": date_key(day),
                "day": day.day,
                "isCurrentMonth": day.month == month,
                "isToday": day == today,
                "hasEvents": day in event_days,
            }
        )

    return {
        "year": year,
        "month": month,
        "monthName": calendar.month_name[month],
        "cells": cells,
    }
