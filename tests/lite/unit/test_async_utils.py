"""Unit tests for dashboard_lite.core.async_utils."""

import asyncio

import pytest

from dashboard_lite.core.async_utils import AsyncOrchestrator, AsyncTimeoutError

pytestmark = [pytest.mark.unit, pytest.mark.fast]


async def _value(value, delay: float = 0.0):
    await asyncio.sleep(delay)
    return value


async def _boom(message: str):
    await asyncio.sleep(0)
    raise ValueError(message)


class TestRunWithTimeout:
    """Tests for AsyncOrchestrator.run_with_timeout."""

    def setup_method(self) -> None:
        self.orchestrator = AsyncOrchestrator(default_timeout=1.0)

    async def test_run_with_timeout_when_fast_then_returns_result(self) -> None:
        """Results of coroutines finishing in time are returned."""
        assert await self.orchestrator.run_with_timeout(_value(42), timeout=1.0) == 42

    async def test_run_with_timeout_when_slow_then_async_timeout_error(self) -> None:
        """Timeouts are raised as AsyncTimeoutError."""
        with pytest.raises(AsyncTimeoutError):
            await self.orchestrator.run_with_timeout(_value(1, delay=1.0), timeout=0.01)

        assert self.orchestrator.get_health_stats()["timeout_count"] == 1

    async def test_run_with_timeout_when_slow_and_not_raising_then_none(self) -> None:
        """raise_on_timeout=False returns None instead."""
        result = await self.orchestrator.run_with_timeout(
            _value(1, delay=1.0), timeout=0.01, raise_on_timeout=False
        )

        assert result is None


class TestSettleAll:
    """Tests for the settle-all barrier."""

    async def test_settle_all_when_mixed_outcomes_then_results_in_input_order(self) -> None:
        """Successes, exceptions and timeouts each occupy their own slot."""
        orchestrator = AsyncOrchestrator()

        results = await orchestrator.settle_all(
            [_value("a", 0.02), _boom("b failed"), _value("c", 1.0), _value("d")],
            timeout=0.2,
        )

        assert results[0] == "a"
        assert isinstance(results[1], ValueError)
        assert isinstance(results[2], AsyncTimeoutError)
        assert results[3] == "d"

    async def test_settle_all_when_one_fails_then_others_still_complete(self) -> None:
        """A failing coroutine does not cancel its siblings."""
        finished = []

        async def slow_ok(name: str):
            await asyncio.sleep(0.02)
            finished.append(name)
            return name

        await AsyncOrchestrator().settle_all([slow_ok("x"), _boom("y"), slow_ok("z")], timeout=1.0)

        assert sorted(finished) == ["x", "z"]

    async def test_settle_all_when_bounded_then_never_exceeds_limit(self) -> None:
        """max_concurrent caps the number of coroutines running at once."""
        active = 0
        peak = 0

        async def tracked(i: int):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return i

        results = await AsyncOrchestrator().settle_all(
            [tracked(i) for i in range(8)], max_concurrent=2, timeout=1.0
        )

        assert results == list(range(8))
        assert peak == 2

    async def test_settle_all_when_empty_then_empty_list(self) -> None:
        """No coroutines settle to an empty list."""
        assert await AsyncOrchestrator().settle_all([]) == []

    async def test_settle_all_when_errors_then_counted_in_health_stats(self) -> None:
        """Non-timeout exceptions are recorded as errors."""
        orchestrator = AsyncOrchestrator()

        await orchestrator.settle_all([_boom("x"), _value(1)], timeout=1.0)

        stats = orchestrator.get_health_stats()
        assert stats["error_count"] == 1
        assert stats["operation_count"] == 2


async def test_get_health_stats_when_timeout_then_rates_reported() -> None:
    """Timeouts count towards both the error and timeout rates."""
    orchestrator = AsyncOrchestrator(default_timeout=0.01)

    await orchestrator.settle_all([_value(1, delay=1.0), _value(2)])

    stats = orchestrator.get_health_stats()
    assert stats["timeout_count"] == 1
    assert stats["timeout_rate"] == 0.5
    assert stats["error_rate"] == 0.5
    assert stats["last_error_time"] is not None
