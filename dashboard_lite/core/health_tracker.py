"""Health tracking for the dashboard_lite server."""

from __future__ import annotations

import asyncio
import os
import platform
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Optional

# No successful refresh for this long marks the server degraded
STALE_REFRESH_SECONDS = 900
STALE_HEARTBEAT_SECONDS = 600


@dataclass
class HealthStatus:
    """Health status information for the server."""

    status: str  # "ok" or "degraded"
    server_time_iso: str
    uptime_seconds: int
    pid: int
    event_count: int
    last_refresh_success_age_seconds: Optional[int]
    last_refresh_attempt_age_seconds: Optional[int]
    refresh_count: int
    source_failures_last_cycle: int
    source_failures_total: int
    parse_failures_total: int
    background_tasks: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class SystemDiagnostics:
    """System diagnostics information."""

    platform: str
    python_version: str
    event_loop_running: bool


class HealthTracker:
    """Refresh and failure counters reported by GET /api/health.

    Only touched from the event loop thread, so plain attributes suffice.
    """

    def __init__(self) -> None:
        self._start_time: float = time.time()
        self._last_refresh_attempt: Optional[float] = None
        self._last_refresh_success: Optional[float] = None
        self._current_event_count: int = 0
        self._refresh_count: int = 0
        self._source_failures_last_cycle: int = 0
        self._source_failures_total: int = 0
        self._parse_failures_total: int = 0
        self._background_task_heartbeat: Optional[float] = None

    def record_refresh_attempt(self) -> None:
        """Record that a refresh attempt was made."""
        self._last_refresh_attempt = time.time()

    def record_refresh_success(
        self, event_count: int, source_failures: int = 0, parse_failures: int = 0
    ) -> None:
        """Record a completed refresh cycle.

        A cycle counts as successful even when some sources failed; their
        failures are tallied separately.

        Args:
            event_count: Number of merged events in the window after refresh
            source_failures: Sources that failed to fetch this cycle
            parse_failures: Feeds whose ICS could not be parsed this cycle
        """
        self._last_refresh_success = time.time()
        self._current_event_count = event_count
        self._refresh_count += 1
        self._source_failures_last_cycle = source_failures
        self._source_failures_total += source_failures
        self._parse_failures_total += parse_failures

    def record_background_heartbeat(self) -> None:
        """Record that background task is alive."""
        self._background_task_heartbeat = time.time()

    def get_uptime_seconds(self) -> int:
        """Get server uptime in seconds since tracker initialization."""
        return int(time.time() - self._start_time)

    @staticmethod
    def _age(timestamp: Optional[float]) -> Optional[int]:
        if timestamp is None:
            return None
        return int(time.time() - timestamp)

    def get_last_refresh_age_seconds(self) -> Optional[int]:
        """Get age of last successful refresh in seconds, or None if never refreshed."""
        return self._age(self._last_refresh_success)

    def get_background_task_status(self) -> dict[str, Any]:
        """Get background task status."""
        heartbeat_age = self._age(self._background_task_heartbeat)
        if heartbeat_age is None:
            status = "unknown"
        elif heartbeat_age < STALE_HEARTBEAT_SECONDS:
            status = "running"
        else:
            status = "stale"

        return {
            "name": "refresher_task",
            "status": status,
            "last_heartbeat_age_s": heartbeat_age,
        }

    def determine_overall_status(self) -> str:
        """Determine overall health status.

        Returns:
            "ok" or "degraded"
        """
        last_success_age = self.get_last_refresh_age_seconds()

        if last_success_age is None:
            return "degraded"

        if last_success_age > STALE_REFRESH_SECONDS:
            return "degraded"

        return "ok"

    def get_health_status(self, current_time_iso: str) -> HealthStatus:
        """Get comprehensive health status.

        Args:
            current_time_iso: Current time in ISO format
        """
        return HealthStatus(
            status=self.determine_overall_status(),
            server_time_iso=current_time_iso,
            uptime_seconds=self.get_uptime_seconds(),
            pid=os.getpid(),
            event_count=self._current_event_count,
            last_refresh_success_age_seconds=self.get_last_refresh_age_seconds(),
            last_refresh_attempt_age_seconds=self._age(self._last_refresh_attempt),
            refresh_count=self._refresh_count,
            source_failures_last_cycle=self._source_failures_last_cycle,
            source_failures_total=self._source_failures_total,
            parse_failures_total=self._parse_failures_total,
            background_tasks=[self.get_background_task_status()],
        )

    def get_event_count(self) -> int:
        return self._current_event_count

    def get_refresh_count(self) -> int:
        return self._refresh_count


def get_system_diagnostics() -> SystemDiagnostics:
    """Get system diagnostics information.

    Returns:
        SystemDiagnostics with platform and runtime information
    """
    event_loop_running = False
    try:
        asyncio.get_running_loop()
        event_loop_running = True
    except RuntimeError:
        pass

    return SystemDiagnostics(
        platform=platform.platform(),
        python_version=sys.version.split()[0],
        event_loop_running=event_loop_running,
    )
