"""Unit tests for dashboard_lite.core.health_tracker."""

from types import SimpleNamespace

import pytest

from dashboard_lite.core import health_tracker as health_module
from dashboard_lite.core.health_tracker import (
    STALE_REFRESH_SECONDS,
    HealthTracker,
    get_system_diagnostics,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(health_module, "time", SimpleNamespace(time=fake))
    return fake


class TestHealthTracker:
    """Tests for refresh bookkeeping and overall status."""

    def test_determine_overall_status_when_never_refreshed_then_degraded(self, clock) -> None:
        """No successful refresh yet means degraded."""
        tracker = HealthTracker()

        assert tracker.determine_overall_status() == "degraded"
        assert tracker.get_last_refresh_age_seconds() is None

    def test_determine_overall_status_when_recent_success_then_ok(self, clock) -> None:
        """A refresh within the staleness limit is ok."""
        tracker = HealthTracker()
        tracker.record_refresh_success(5)
        clock.now += 60

        assert tracker.determine_overall_status() == "ok"
        assert tracker.get_last_refresh_age_seconds() == 60

    def test_determine_overall_status_when_success_stale_then_degraded(self, clock) -> None:
        """A refresh older than the staleness limit is degraded."""
        tracker = HealthTracker()
        tracker.record_refresh_success(5)
        clock.now += STALE_REFRESH_SECONDS + 1

        assert tracker.determine_overall_status() == "degraded"

    def test_record_refresh_success_when_failures_then_totals_accumulate(self, clock) -> None:
        """Per-cycle failures replace the last-cycle value and add to totals."""
        tracker = HealthTracker()
        tracker.record_refresh_success(10, source_failures=2, parse_failures=1)
        tracker.record_refresh_success(12, source_failures=1)

        status = tracker.get_health_status("2025-08-26T14:00:00Z")

        assert status.event_count == 12
        assert status.refresh_count == 2
        assert status.source_failures_last_cycle == 1
        assert status.source_failures_total == 3
        assert status.parse_failures_total == 1
        assert status.server_time_iso == "2025-08-26T14:00:00Z"

    def test_get_background_task_status_when_heartbeats_then_running_or_stale(self, clock) -> None:
        """Heartbeat age decides the background task status."""
        tracker = HealthTracker()
        assert tracker.get_background_task_status()["status"] == "unknown"

        tracker.record_background_heartbeat()
        assert tracker.get_background_task_status()["status"] == "running"

        clock.now += 3600
        assert tracker.get_background_task_status()["status"] == "stale"

    def test_get_health_status_when_attempt_recorded_then_attempt_age_reported(self, clock) -> None:
        """Attempts are tracked separately from successes."""
        tracker = HealthTracker()
        tracker.record_refresh_attempt()
        clock.now += 5

        status = tracker.get_health_status("now")

        assert status.last_refresh_attempt_age_seconds == 5
        assert status.last_refresh_success_age_seconds is None
        assert status.status == "degraded"
        assert status.background_tasks[0]["name"] == "refresher_task"


async def test_get_system_diagnostics_when_in_loop_then_event_loop_running() -> None:
    """Diagnostics report the running loop and interpreter version."""
    diag = get_system_diagnostics()

    assert diag.event_loop_running is True
    assert diag.python_version.count(".") == 2
