"""Agenda, refresh, month-grid and health routes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, tzinfo
from typing import Any, Optional

from aiohttp import web

from dashboard_lite.api.middleware import json_error
from dashboard_lite.calendar.lite_datetime_utils import local_date, serialize_datetime_utc
from dashboard_lite.calendar.lite_fetcher import FETCHER_CLIENT_ID
from dashboard_lite.calendar.lite_models import AgendaSnapshot
from dashboard_lite.core.health_tracker import HealthTracker, get_system_diagnostics
from dashboard_lite.core.http_client import get_client_health
from dashboard_lite.domain.agenda_renderer import render_agenda, render_month_grid
from dashboard_lite.domain.fetch_orchestrator import FetchOrchestrator
from dashboard_lite.domain.refresh_service import AgendaRefreshService

logger = logging.getLogger(__name__)


def snapshot_summary(snapshot: AgendaSnapshot) -> dict[str, Any]:
    """Counts and failures of a snapshot, without the rendered days."""
    return {
        "generatedAt": serialize_datetime_utc(snapshot.generated_at),
        "windowStart": serialize_datetime_utc(snapshot.window_start),
        "windowEnd": serialize_datetime_utc(snapshot.window_end),
        "sourcesTotal": snapshot.sources_total,
        "sourcesOk": snapshot.sources_ok,
        "eventCount": snapshot.event_count,
        "failures": [f.to_json_dict() for f in snapshot.failures],
    }


def register_calendar_routes(
    app: web.Application,
    refresh_service: AgendaRefreshService,
    health_tracker: HealthTracker,
    time_provider: Callable[[], datetime],
    tz: tzinfo,
    fetch_orchestrator: Optional[FetchOrchestrator] = None,
) -> None:
    """Register agenda routes.

    Args:
        app: aiohttp web application
        refresh_service: Holder of the latest AgendaSnapshot
        health_tracker: Health tracking instance
        time_provider: Returns the current aware instant
        tz: Local timezone used for labels and the month grid
        fetch_orchestrator: Source of settle-all counters for the health report
    """

    async def get_agenda(_request: web.Request) -> web.Response:
        snapshot = refresh_service.snapshot
        if snapshot is None:
            return json_error("agenda not ready", 503, refreshing=refresh_service.is_refreshing)

        body = snapshot_summary(snapshot)
        body["days"] = render_agenda(snapshot.buckets, time_provider(), tz)
        return web.json_response(body)

    async def post_refresh(_request: web.Request) -> web.Response:
        snapshot = await refresh_service.refresh()
        return web.json_response({"success": True, **snapshot_summary(snapshot)})

    async def get_month(request: web.Request) -> web.Response:
        today = local_date(time_provider(), tz)
        try:
            year = int(request.query.get("year", today.year))
            month = int(request.query.get("month", today.month))
        except ValueError:
            return json_error("year and month must be integers", 400)
        if not 1 <= month <= 12 or not 1 <= year <= 9999:
            return json_error("month must be 1-12 and year 1-9999", 400)

        snapshot = refresh_service.snapshot
        events = (
            [event for bucket in snapshot.buckets.values() for event in bucket.events]
            if snapshot is not None
            else []
        )
        return web.json_response(render_month_grid(year, month, events, time_provider(), tz))

    async def health_check(_request: web.Request) -> web.Response:
        """Health check endpoint for monitoring system status."""
        now_iso = serialize_datetime_utc(time_provider())
        health_status = health_tracker.get_health_status(now_iso)
        diag = get_system_diagnostics()

        snapshot = refresh_service.snapshot
        health_data = {
            "status": health_status.status,
            "server_time_iso": health_status.server_time_iso,
            "server_status": {
                "uptime_s": health_status.uptime_seconds,
                "pid": health_status.pid,
            },
            "data_status": {
                "event_count": health_status.event_count,
                "last_refresh_success_age_s": health_status.last_refresh_success_age_seconds,
                "last_refresh_attempt_age_s": health_status.last_refresh_attempt_age_seconds,
                "refresh_count": health_status.refresh_count,
                "refreshing": refresh_service.is_refreshing,
                "sources_total": snapshot.sources_total if snapshot else 0,
                "sources_ok": snapshot.sources_ok if snapshot else 0,
            },
            "failures": {
                "source_failures_last_cycle": health_status.source_failures_last_cycle,
                "source_failures_total": health_status.source_failures_total,
                "parse_failures_total": health_status.parse_failures_total,
                "coalesced_refreshes": refresh_service.coalesced_requests,
                "skipped_ticks": refresh_service.skipped_ticks,
            },
            "background_tasks": health_status.background_tasks,
            "http_client": {
                "consecutive_errors": int(get_client_health(FETCHER_CLIENT_ID).get("error_count", 0)),
            },
            "system_diagnostics": {
                "platform": diag.platform,
                "python_version": diag.python_version,
                "event_loop_running": diag.event_loop_running,
            },
        }

        if fetch_orchestrator is not None:
            health_data["fetch_stats"] = fetch_orchestrator.get_health_stats()

        http_status = 200 if health_status.status == "ok" else 503
        return web.json_response(health_data, status=http_status)

    app.router.add_get("/api/calendar/agenda", get_agenda)
    app.router.add_post("/api/calendar/refresh", post_refresh)
    app.router.add_get("/api/calendar/month", get_month)
    app.router.add_get("/api/health", health_check)
