"""Unit tests for dashboard_lite.domain.pipeline."""

import pytest

from dashboard_lite.calendar.lite_fetcher import LiteICSRelayError
from dashboard_lite.calendar.lite_parser import LiteICSParser
from dashboard_lite.domain.config_store import ConfigValidationError, DashboardConfigStore
from dashboard_lite.domain.fetch_orchestrator import FetchOrchestrator
from dashboard_lite.domain.pipeline import CalendarAggregationPipeline

pytestmark = pytest.mark.unit


class StubFetcher:
    """Serves ICS text by feed URL; exceptions in the map are raised."""

    def __init__(self, by_url: dict) -> None:
        self.by_url = by_url
        self.fetched: list[str] = []

    async def fetch(self, source) -> str:
        self.fetched.append(source.url)
        response = self.by_url[source.url]
        if isinstance(response, BaseException):
            raise response
        return response


def _pipeline(store: DashboardConfigStore, fetcher: StubFetcher, tz, now) -> CalendarAggregationPipeline:
    orchestrator = FetchOrchestrator(fetcher, LiteICSParser(tz), fetch_timeout_seconds=1.0)
    return CalendarAggregationPipeline(store, orchestrator, tz=tz, time_provider=lambda: now)


async def test_run_when_feed_has_no_events_then_full_window_of_empty_buckets(
    config_store, chicago_tz, fixed_now, sample_ics_empty
) -> None:
    """A feed with zero VEVENTs still yields every day of the window."""
    source = config_store.add_calendar("Work", "https://c.example/work.ics")
    pipeline = _pipeline(config_store, StubFetcher({source.url: sample_ics_empty}), chicago_tz, fixed_now)

    snapshot = await pipeline.run()

    assert len(snapshot.buckets) == 107
    assert snapshot.event_count == 0
    assert all(not b.events for b in snapshot.buckets.values())
    assert [k for k, b in snapshot.buckets.items() if not b.is_past][0] == "2025-08-26"
    assert snapshot.sources_total == 1
    assert snapshot.sources_ok == 1
    assert snapshot.failures == ()


async def test_run_when_one_source_fails_then_other_events_kept_and_failure_recorded(
    config_store, chicago_tz, fixed_now, sample_ics_two_events
) -> None:
    """Relay rejection for B leaves exactly A's two events."""
    a = config_store.add_calendar("A", "https://c.example/a.ics")
    b = config_store.add_calendar("B", "https://c.example/b.ics")
    fetcher = StubFetcher({a.url: sample_ics_two_events, b.url: LiteICSRelayError("HTTP 403", 403)})

    snapshot = await _pipeline(config_store, fetcher, chicago_tz, fixed_now).run()

    assert snapshot.event_count == 2
    assert snapshot.sources_ok == 1
    assert [f.source_name for f in snapshot.failures] == ["B"]
    titles = [e.title for bucket in snapshot.buckets.values() for e in bucket.events]
    assert titles == ["Team Meeting", "Dentist"]


async def test_run_when_same_meeting_in_two_feeds_then_merged_once(config_store, chicago_tz, fixed_now, ics_builder) -> None:
    """"Meeting"/"meeting" at the same instant across feeds is a single event."""
    a = config_store.add_calendar("Work", "https://c.example/work.ics")
    b = config_store.add_calendar("Personal", "https://c.example/personal.ics")
    fetcher = StubFetcher(
        {
            a.url: ics_builder("UID:w1\nDTSTART:20250826T140000Z\nSUMMARY:Meeting"),
            b.url: ics_builder("UID:p1\nDTSTART:20250826T140000Z\nSUMMARY:meeting"),
        }
    )

    snapshot = await _pipeline(config_store, fetcher, chicago_tz, fixed_now).run()

    events = snapshot.buckets["2025-08-26"].events
    assert len(events) == 1
    assert events[0].calendar_sources == ("Work", "Personal")
    assert snapshot.event_count == 1


async def test_run_when_source_disabled_then_not_fetched(config_store, chicago_tz, fixed_now, sample_ics_two_events) -> None:
    """Disabled calendars are skipped entirely."""
    enabled = config_store.add_calendar("On", "https://c.example/on.ics")
    disabled = config_store.add_calendar("Off", "https://c.example/off.ics")
    config_store.update_calendar(disabled.id, {"enabled": False})
    fetcher = StubFetcher({enabled.url: sample_ics_two_events})

    snapshot = await _pipeline(config_store, fetcher, chicago_tz, fixed_now).run()

    assert fetcher.fetched == [enabled.url]
    assert snapshot.sources_total == 1


async def test_run_when_feed_malformed_then_parse_failure_counted(config_store, chicago_tz, fixed_now) -> None:
    """Malformed feeds are counted per run, not as source failures."""
    source = config_store.add_calendar("Broken", "https://c.example/broken.ics")
    pipeline = _pipeline(config_store, StubFetcher({source.url: "garbage"}), chicago_tz, fixed_now)

    first = await pipeline.run()
    second = await pipeline.run()

    assert first.parse_failures == 1
    assert second.parse_failures == 1
    assert first.failures == ()


async def test_run_when_window_configured_then_snapshot_bounds_follow(config_store, chicago_tz, fixed_now) -> None:
    """The stored window config drives the event window and buckets."""
    config_store.save_config({"calendar": {"pastWeeks": 0, "futureMonths": 1}})
    pipeline = _pipeline(config_store, StubFetcher({}), chicago_tz, fixed_now)

    snapshot = await pipeline.run()

    assert snapshot.window_start == fixed_now
    assert list(snapshot.buckets)[0] == "2025-08-26"
    assert list(snapshot.buckets)[-1] == "2025-09-26"
    assert snapshot.sources_total == 0
    assert snapshot.generated_at == fixed_now


async def test_run_when_config_invalid_then_error_propagates(config_store, chicago_tz, fixed_now) -> None:
    """Configuration errors abort the run."""
    (config_store.data_dir / "config.json").write_text('{"calendar": {"pastWeeks": -2}}', encoding="utf-8")
    pipeline = _pipeline(config_store, StubFetcher({}), chicago_tz, fixed_now)

    with pytest.raises(ConfigValidationError):
        await pipeline.run()
