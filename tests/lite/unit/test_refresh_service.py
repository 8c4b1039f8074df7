"""Unit tests for dashboard_lite.domain.refresh_service.AgendaRefreshService."""

import asyncio
from datetime import UTC, datetime

import pytest

from dashboard_lite.calendar.lite_models import AgendaSnapshot
from dashboard_lite.core.health_tracker import HealthTracker
from dashboard_lite.domain.config_store import ConfigValidationError
from dashboard_lite.domain.refresh_service import AgendaRefreshService

pytestmark = pytest.mark.unit

NOW = datetime(2025, 8, 26, 14, 0, tzinfo=UTC)


class GatedPipeline:
    """Pipeline stub whose run() blocks until the gate opens."""

    def __init__(self, gated: bool = True) -> None:
        self.gate = asyncio.Event()
        if not gated:
            self.gate.set()
        self.runs = 0
        self.error: BaseException | None = None

    async def run(self) -> AgendaSnapshot:
        self.runs += 1
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return AgendaSnapshot(generated_at=NOW, window_start=NOW, window_end=NOW, event_count=self.runs)


class DummyStore:
    def __init__(self, interval: float = 300.0, error: Exception | None = None) -> None:
        self.interval = interval
        self.error = error

    def get_refresh_interval_seconds(self) -> float:
        if self.error is not None:
            raise self.error
        return self.interval


async def test_snapshot_when_no_cycle_completed_then_none() -> None:
    """No snapshot is published before the first cycle finishes."""
    service = AgendaRefreshService(GatedPipeline(), DummyStore())

    assert service.snapshot is None
    assert service.is_refreshing is False


async def test_refresh_when_called_concurrently_then_single_cycle_shared() -> None:
    """Overlapping refresh requests join the in-flight cycle."""
    pipeline = GatedPipeline()
    service = AgendaRefreshService(pipeline, DummyStore())

    first = asyncio.create_task(service.refresh())
    await asyncio.sleep(0)
    second = asyncio.create_task(service.refresh())
    await asyncio.sleep(0)
    assert service.is_refreshing is True

    pipeline.gate.set()
    results = await asyncio.gather(first, second)

    assert pipeline.runs == 1
    assert results[0] is results[1]
    assert service.snapshot is results[0]
    assert service.cycles_started == 1
    assert service.coalesced_requests == 1


async def test_refresh_when_previous_cycle_done_then_new_cycle_started() -> None:
    """Sequential refreshes each run the pipeline."""
    pipeline = GatedPipeline(gated=False)
    service = AgendaRefreshService(pipeline, DummyStore())

    await service.refresh()
    latest = await service.refresh()

    assert pipeline.runs == 2
    assert latest.event_count == 2
    assert service.snapshot is latest


async def test_tick_when_cycle_in_flight_then_skipped() -> None:
    """Timer ticks never start a second concurrent cycle."""
    pipeline = GatedPipeline()
    service = AgendaRefreshService(pipeline, DummyStore())

    assert service.tick() is True
    await asyncio.sleep(0)
    assert service.tick() is False
    assert service.skipped_ticks == 1

    pipeline.gate.set()
    await asyncio.sleep(0.01)
    assert service.is_refreshing is False
    assert pipeline.runs == 1


async def test_refresh_when_pipeline_raises_then_error_propagates_and_snapshot_kept(caplog) -> None:
    """A failing cycle leaves the previous snapshot published."""
    pipeline = GatedPipeline(gated=False)
    service = AgendaRefreshService(pipeline, DummyStore())
    previous = await service.refresh()
    pipeline.error = RuntimeError("pipeline bug")

    with pytest.raises(RuntimeError, match="pipeline bug"):
        await service.refresh()

    assert service.snapshot is previous
    assert service.is_refreshing is False
    assert "Refresh cycle failed" in caplog.text


async def test_refresh_when_completed_then_health_recorded() -> None:
    """Successful cycles update the health tracker."""
    tracker = HealthTracker()
    service = AgendaRefreshService(GatedPipeline(gated=False), DummyStore(), tracker)

    await service.refresh()

    assert tracker.get_refresh_count() == 1
    assert tracker.get_event_count() == 1
    assert tracker.determine_overall_status() == "ok"


async def test_refresh_when_caller_cancelled_then_shared_cycle_continues() -> None:
    """Cancelling one waiter does not cancel the cycle itself."""
    pipeline = GatedPipeline()
    service = AgendaRefreshService(pipeline, DummyStore())

    waiter = asyncio.create_task(service.refresh())
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    assert service.is_refreshing is True
    pipeline.gate.set()
    snapshot = await service.refresh()
    assert pipeline.runs == 1
    assert snapshot is service.snapshot


def test_get_interval_seconds_when_config_invalid_then_default() -> None:
    """An unreadable refresh interval falls back to five minutes."""
    service = AgendaRefreshService(GatedPipeline(), DummyStore(error=ConfigValidationError("bad")))

    assert service.get_interval_seconds() == 300.0


async def test_run_periodic_when_stop_set_then_loop_exits_after_ticks() -> None:
    """The loop ticks immediately, then once per interval, until stopped."""
    pipeline = GatedPipeline(gated=False)
    tracker = HealthTracker()
    service = AgendaRefreshService(pipeline, DummyStore(interval=0.01), tracker)
    stop_event = asyncio.Event()

    loop_task = asyncio.create_task(service.run_periodic(stop_event))
    await asyncio.sleep(0.05)
    stop_event.set()
    await asyncio.wait_for(loop_task, timeout=1.0)
    await service.stop()

    assert pipeline.runs >= 2
    assert service.snapshot is not None
    assert tracker.get_background_task_status()["status"] == "running"


async def test_stop_when_cycle_in_flight_then_cancelled() -> None:
    """stop() cancels and awaits the running cycle."""
    pipeline = GatedPipeline()
    service = AgendaRefreshService(pipeline, DummyStore())
    service.tick()
    await asyncio.sleep(0)

    await service.stop()

    assert service.is_refreshing is False
    assert service.snapshot is None
