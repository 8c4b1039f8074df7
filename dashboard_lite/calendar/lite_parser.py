"""iCalendar parser for dashboard_lite.

Turns raw ICS text into RawEvent records bounded by the agenda window.
Recurring masters are not expanded: only their DTSTART instance is considered.
"""

import logging
import uuid
from datetime import datetime, timedelta, tzinfo
from typing import Any, Optional

from icalendar import Calendar

from dashboard_lite.calendar.lite_datetime_utils import LiteDateTimeParser
from dashboard_lite.calendar.lite_models import (
    UNTITLED_EVENT,
    CalendarSource,
    EventWindow,
    RawEvent,
)
from dashboard_lite.lite_logging import log_monitoring_event

logger = logging.getLogger(__name__)


def _text(component: Any, name: str) -> str:
    value = component.get(name)
    if value is None:
        return ""
    return str(value).strip()


class LiteICSParser:
    """Parses ICS text into window-filtered RawEvent lists."""

    def __init__(self, local_tz: tzinfo) -> None:
        """Initialize ICS parser.

        Args:
            local_tz: Timezone for floating times and date-only values
        """
        self._datetime_parser = LiteDateTimeParser(local_tz)
        self.parse_failures = 0
        self.events_without_start = 0

        logger.debug("ICS parser initialized")

    def parse(self, ics_text: str, source: CalendarSource, window: EventWindow) -> list[RawEvent]:
        """Parse one feed's ICS text.

        Malformed calendars yield an empty list (logged and counted) rather than
        an error, so one broken feed only costs its own events.

        Args:
            ics_text: Raw ICS/VCALENDAR text
            source: Source the text came from (its name tags every event)
            window: Inclusive instant range; events starting outside are dropped

        Returns:
            RawEvents in feed order
        """
        try:
            calendar = Calendar.from_ical(ics_text)
        except Exception as e:
            self.parse_failures += 1
            log_monitoring_event(
                "calendar.parse.malformed",
                f"Failed to parse ICS for {source.name!r}: {e}",
                "WARNING",
                details={"source_id": source.id, "bytes": len(ics_text)},
            )
            return []

        events: list[RawEvent] = []
        outside_window = 0

        for component in calendar.walk("VEVENT"):
            try:
                event = self._parse_event(component, source)
            except (TypeError, ValueError) as e:
                logger.debug("Skipping unreadable VEVENT in %r: %s", source.name, e)
                continue

            if event is None:
                continue
            if not window.contains(event.start_time):
                outside_window += 1
                continue
            events.append(event)

        logger.debug(
            "Parsed %d events from %r (%d outside window)",
            len(events),
            source.name,
            outside_window,
        )
        return events

    def _parse_event(self, component: Any, source: CalendarSource) -> Optional[RawEvent]:
        """Map a VEVENT component to a RawEvent, or None when it has no start."""
        dtstart = component.get("DTSTART")
        if dtstart is None:
            self.events_without_start += 1
            logger.debug("Dropping VEVENT without DTSTART in %r", source.name)
            return None

        start = self._datetime_parser.parse_property(dtstart)
        if start is None:
            return None

        is_recurring = component.get("RRULE") is not None or component.get("RDATE") is not None
        all_day = not is_recurring and LiteDateTimeParser.is_date_only(dtstart)

        return RawEvent(
            uid=_text(component, "UID") or uuid.uuid4().hex,
            title=_text(component, "SUMMARY") or UNTITLED_EVENT,
            start_time=start,
            end_time=self._resolve_end(component, start),
            location=_text(component, "LOCATION"),
            description=_text(component, "DESCRIPTION"),
            source_calendar_name=source.name,
            all_day=all_day,
        )

    def _resolve_end(self, component: Any, start: datetime) -> Optional[datetime]:
        """DTEND if present, else DTSTART + DURATION, else None."""
        dtend = component.get("DTEND")
        if dtend is not None:
            return self._datetime_parser.parse_property(dtend)

        duration = component.get("DURATION")
        if duration is not None:
            delta = getattr(duration, "dt", duration)
            if isinstance(delta, timedelta):
                return start + delta
        return None
