from collections.abc import AsyncIterator, Callable, Generator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from dashboard_lite.calendar.lite_models import CalendarSource
from dashboard_lite.core.http_client import close_all_clients
from dashboard_lite.domain.config_store import DashboardConfigStore


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure dashboard environment variables never leak between tests.

    DASHBOARD_TEST_TIME freezes the clock and DASHBOARD_TIMEZONE changes how
    calendar days are bucketed, so both are cleared before and after each test.
    """
    for name in ("DASHBOARD_TEST_TIME", "DASHBOARD_TIMEZONE", "DASHBOARD_DEBUG", "DASHBOARD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield
    for name in ("DASHBOARD_TEST_TIME", "DASHBOARD_TIMEZONE", "DASHBOARD_DEBUG", "DASHBOARD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Autouse async fixture to clean up shared HTTP clients.

    Ensures dashboard_lite.core.http_client.close_all_clients() is invoked
    after every test to prevent resource leaks from httpx clients.
    """
    yield
    await close_all_clients()


@pytest.fixture
def chicago_tz() -> ZoneInfo:
    """Deterministic local timezone (UTC-5 during the August test dates)."""
    return ZoneInfo("America/Chicago")


@pytest.fixture
def fixed_now() -> datetime:
    """Tuesday 2025-08-26 14:00 UTC (09:00 in Chicago)."""
    return datetime(2025, 8, 26, 14, 0, tzinfo=UTC)


@pytest.fixture
def make_source() -> Callable[..., CalendarSource]:
    """Return a builder for CalendarSource objects with sensible defaults."""

    def builder(
        name: str = "Work",
        url: str | None = None,
        source_id: str | None = None,
        enabled: bool = True,
    ) -> CalendarSource:
        slug = name.lower().replace(" ", "-")
        return CalendarSource(
            id=source_id or f"src-{slug}",
            name=name,
            url=url or f"https://calendars.example.com/{slug}.ics",
            enabled=enabled,
        )

    return builder


@pytest.fixture
def config_store(tmp_path: Path) -> DashboardConfigStore:
    """A config store rooted in a fresh temporary data directory."""
    return DashboardConfigStore(tmp_path / "data")


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_two_events() -> str:
    """
    Return an ICS calendar with two timed events inside the default window.

    - "Team Meeting" 2025-08-26 15:00-16:00 UTC in Room 4
    - "Dentist" 2025-08-28 13:30-14:00 UTC
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Dashboard Lite Test//EN
BEGIN:VEVENT
UID:team-meeting-001@dashboard.test
DTSTART:20250826T150000Z
DTEND:20250826T160000Z
SUMMARY:Team Meeting
LOCATION:Room 4
DESCRIPTION:Weekly sync
END:VEVENT
BEGIN:VEVENT
UID:dentist-001@dashboard.test
DTSTART:20250828T133000Z
DTEND:20250828T140000Z
SUMMARY:Dentist
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_empty() -> str:
    """Return a valid ICS calendar without any VEVENT."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Dashboard Lite Test//EN
END:VCALENDAR"""


def make_ics(*vevents: str) -> str:
    """Wrap VEVENT bodies (without BEGIN/END lines) in a VCALENDAR."""
    blocks = "".join(f"BEGIN:VEVENT\n{body.strip()}\nEND:VEVENT\n" for body in vevents)
    return f"BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//Dashboard Lite Test//EN\n{blocks}END:VCALENDAR"


@pytest.fixture
def ics_builder() -> Callable[..., str]:
    """Return make_ics for tests that build calendars inline."""
    return make_ics
