"""Async orchestration helpers for dashboard_lite.

Usage Example:
    ```python
    from dashboard_lite.core.async_utils import AsyncOrchestrator

    orchestrator = AsyncOrchestrator(default_timeout=10.0)

    # Run async function with timeout
    text = await orchestrator.run_with_timeout(fetcher.fetch(source), timeout=10.0)

    # Wait for every task, collecting results and exceptions side by side
    outcomes = await orchestrator.settle_all(
        [fetch(a), fetch(b)], max_concurrent=4, timeout=10.0
    )
    ```
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Sequence
from typing import Any, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncOrchestratorError(Exception):
    """Base exception for AsyncOrchestrator errors."""


class AsyncTimeoutError(AsyncOrchestratorError):
    """Raised when async operation exceeds timeout."""


class AsyncOrchestrator:
    """Timeout and settle-all helpers with simple health counters."""

    def __init__(self, default_timeout: float = 30.0):
        self.default_timeout = default_timeout

        self._operation_count = 0
        self._error_count = 0
        self._timeout_count = 0
        self._last_error_time: Optional[float] = None

        logger.debug("AsyncOrchestrator initialized: default_timeout=%.1fs", default_timeout)

    def _record_operation(self, success: bool = True, timeout: bool = False) -> None:
        self._operation_count += 1

        if not success:
            self._error_count += 1
            self._last_error_time = time.time()

        if timeout:
            self._timeout_count += 1

    async def run_with_timeout(
        self,
        coro: Awaitable[T],
        timeout: Optional[float] = None,
        raise_on_timeout: bool = True,
    ) -> Optional[T]:
        """Run async coroutine with timeout.

        Args:
            coro: Coroutine to execute
            timeout: Timeout in seconds (uses default if None)
            raise_on_timeout: Whether to raise exception on timeout

        Returns:
            Coroutine result, or None on timeout when raise_on_timeout is False

        Raises:
            AsyncTimeoutError: If timeout occurs and raise_on_timeout=True
        """
        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = await asyncio.wait_for(coro, timeout=effective_timeout)
        except TimeoutError as e:
            self._record_operation(success=False, timeout=True)
            logger.warning("Operation timed out after %.1fs", effective_timeout)
            if raise_on_timeout:
                raise AsyncTimeoutError(
                    f"Operation exceeded timeout of {effective_timeout}s"
                ) from e
            return None

        self._record_operation(success=True)
        return result

    async def settle_all(
        self,
        coroutines: Sequence[Awaitable[T]],
        max_concurrent: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> list[Union[T, BaseException]]:
        """Await every coroutine and return results and exceptions in input order.

        Each coroutine is bounded by ``timeout`` on its own (a slow one turns into
        an AsyncTimeoutError in its slot) and at most ``max_concurrent`` run at
        once. Nothing raised by one coroutine affects the others. Cancellation of
        the caller still propagates.

        Args:
            coroutines: Awaitables to run
            max_concurrent: Concurrency bound (unbounded when None)
            timeout: Per-coroutine timeout in seconds (default_timeout when None)

        Returns:
            One entry per input: its result or the exception it raised
        """
        semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent else None

        async def _bounded(coro: Awaitable[T]) -> Optional[T]:
            if semaphore is None:
                return await self.run_with_timeout(coro, timeout=timeout)
            async with semaphore:
                return await self.run_with_timeout(coro, timeout=timeout)

        results = await asyncio.gather(
            *(_bounded(coro) for coro in coroutines), return_exceptions=True
        )

        for result in results:
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException) and not isinstance(result, AsyncTimeoutError):
                self._record_operation(success=False)

        return list(results)

    def get_health_stats(self) -> dict[str, Any]:
        """Get health statistics for monitoring."""
        error_rate = self._error_count / self._operation_count if self._operation_count > 0 else 0.0
        timeout_rate = (
            self._timeout_count / self._operation_count if self._operation_count > 0 else 0.0
        )

        return {
            "operation_count": self._operation_count,
            "error_count": self._error_count,
            "timeout_count": self._timeout_count,
            "error_rate": error_rate,
            "timeout_rate": timeout_rate,
            "last_error_time": self._last_error_time,
        }

