"""Time provider and local timezone resolution for dashboard_lite."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from typing import ClassVar

logger = logging.getLogger(__name__)


class TimezoneResolver:
    """Resolves the dashboard's local timezone.

    Calendar days are always derived in the local timezone, so every component
    that buckets or labels events asks this resolver rather than assuming UTC.
    """

    # Obsolete/legacy names still found in feeds and hand-written config.
    TZ_ALIAS_MAP: ClassVar[dict[str, str]] = {
        "US/Pacific": "America/Los_Angeles",
        "US/Mountain": "America/Denver",
        "US/Central": "America/Chicago",
        "US/Eastern": "America/New_York",
        "US/Alaska": "America/Anchorage",
        "US/Hawaii": "Pacific/Honolulu",
        "US/Arizona": "America/Phoenix",
        "GMT": "UTC",
        "Etc/UTC": "UTC",
        "Etc/GMT": "UTC",
        "Universal": "UTC",
        "Zulu": "UTC",
        "PST8PDT": "America/Los_Angeles",
        "MST7MDT": "America/Denver",
        "CST6CDT": "America/Chicago",
        "EST5EDT": "America/New_York",
    }

    def resolve_alias(self, tz_name: str) -> str:
        """Map an alias to its canonical IANA identifier (identity otherwise)."""
        return self.TZ_ALIAS_MAP.get(tz_name, tz_name)

    def get_local_timezone(self, tz_name: str | None = None) -> datetime.tzinfo:
        """Return the tzinfo used for local calendar days.

        Resolution order: explicit ``tz_name``, the ``DASHBOARD_TIMEZONE``
        environment variable, then the host's local timezone.

        Args:
            tz_name: Optional IANA timezone identifier

        Returns:
            A tzinfo instance
        """
        name = tz_name or os.environ.get("DASHBOARD_TIMEZONE")
        if name:
            canonical = self.resolve_alias(name.strip())
            try:
                return zoneinfo.ZoneInfo(canonical)
            except (zoneinfo.ZoneInfoNotFoundError, ValueError):
                logger.warning("Unknown timezone %r, using host local timezone", name)

        local_tz = datetime.datetime.now().astimezone().tzinfo
        return local_tz if local_tz is not None else datetime.UTC


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden via the DASHBOARD_TEST_TIME environment variable
        (ISO 8601, e.g. "2025-08-26T09:00:00-05:00"). Naive values are taken as UTC.

        Returns:
            Current time in UTC with timezone info
        """
        test_time = os.environ.get("DASHBOARD_TEST_TIME")
        if test_time:
            from dateutil import parser as date_parser

            try:
                dt = date_parser.isoparse(test_time)
            except ValueError as e:
                logger.warning("Failed to parse DASHBOARD_TEST_TIME=%r: %s", test_time, e)
            else:
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.UTC)
                return dt.replace(tzinfo=datetime.UTC)

        return datetime.datetime.now(datetime.UTC)


_resolver = TimezoneResolver()
_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def get_local_timezone(tz_name: str | None = None) -> datetime.tzinfo:
    """Get the local timezone used for calendar-day bucketing (convenience function)."""
    return _resolver.get_local_timezone(tz_name)


def to_local(dt: datetime.datetime, tz: datetime.tzinfo | None = None) -> datetime.datetime:
    """Convert an aware datetime to the local timezone.

    Naive datetimes are treated as already local (floating time).
    """
    target = tz or get_local_timezone()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=target)
    return dt.astimezone(target)
