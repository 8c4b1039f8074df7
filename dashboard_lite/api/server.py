"""aiohttp server wiring for dashboard_lite.

Builds the store, fetch/parse/merge pipeline and refresh service from the
process configuration, exposes them through the REST routes and runs the
background refresh loop until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Optional

from aiohttp import web

from dashboard_lite.api.middleware import error_middleware
from dashboard_lite.api.routes import register_calendar_routes, register_config_routes
from dashboard_lite.calendar.lite_fetcher import DEFAULT_RELAY_URL, LiteICSFetcher
from dashboard_lite.calendar.lite_parser import LiteICSParser
from dashboard_lite.core.config_manager import (
    DEFAULT_FETCH_CONCURRENCY,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_WEB_HOST,
    DEFAULT_WEB_PORT,
    get_config_value,
)
from dashboard_lite.core.health_tracker import HealthTracker
from dashboard_lite.core.http_client import close_all_clients
from dashboard_lite.core.timezone_utils import get_local_timezone, now_utc
from dashboard_lite.domain.config_store import DashboardConfigStore
from dashboard_lite.domain.fetch_orchestrator import FetchOrchestrator
from dashboard_lite.domain.pipeline import CalendarAggregationPipeline
from dashboard_lite.domain.refresh_service import AgendaRefreshService
from dashboard_lite.lite_logging import configure_lite_logging, get_logging_status, log_monitoring_event

logger = logging.getLogger(__name__)

MAX_PORT_ATTEMPTS = 10


@dataclass
class DashboardServices:
    """Long-lived objects shared by the routes and the refresh loop."""

    store: DashboardConfigStore
    refresh_service: AgendaRefreshService
    health_tracker: HealthTracker
    tz: tzinfo
    time_provider: Callable[[], datetime] = field(default=now_utc)
    fetch_orchestrator: Optional[FetchOrchestrator] = None


def build_services(config: Any) -> DashboardServices:
    """Construct the store, pipeline and refresh service from configuration.

    Args:
        config: dict (or attribute object) with the keys produced by
            ConfigManager.build_config_from_env
    """
    tz = get_local_timezone(get_config_value(config, "timezone"))
    store = DashboardConfigStore(get_config_value(config, "data_dir", "./data"))

    fetcher = LiteICSFetcher(relay_url=get_config_value(config, "relay_url", DEFAULT_RELAY_URL))
    parser = LiteICSParser(tz)
    orchestrator = FetchOrchestrator(
        fetcher,
        parser,
        fetch_concurrency=int(
            get_config_value(config, "fetch_concurrency", DEFAULT_FETCH_CONCURRENCY)
        ),
        fetch_timeout_seconds=float(
            get_config_value(config, "fetch_timeout_seconds", DEFAULT_FETCH_TIMEOUT_SECONDS)
        ),
    )

    health_tracker = HealthTracker()
    pipeline = CalendarAggregationPipeline(store, orchestrator, tz=tz, time_provider=now_utc)
    refresh_service = AgendaRefreshService(pipeline, store, health_tracker)

    logger.debug(
        "Services built: data_dir=%s tz=%s relay=%s",
        store.data_dir,
        tz,
        fetcher.relay_url or "direct",
    )
    return DashboardServices(
        store=store,
        refresh_service=refresh_service,
        health_tracker=health_tracker,
        tz=tz,
        time_provider=now_utc,
        fetch_orchestrator=orchestrator,
    )


def create_app(services: DashboardServices) -> web.Application:
    """Create aiohttp web application with routes wired to the services."""
    app = web.Application(middlewares=[error_middleware])

    register_config_routes(app, services.store, services.refresh_service)
    register_calendar_routes(
        app,
        services.refresh_service,
        services.health_tracker,
        services.time_provider,
        services.tz,
        fetch_orchestrator=services.fetch_orchestrator,
    )

    async def _shutdown(_app: web.Application) -> None:
        logger.info("Application shutdown requested")
        await services.refresh_service.stop()

    app.on_shutdown.append(_shutdown)
    return app


async def _start_site(runner: web.AppRunner, host: str, configured_port: int) -> int:
    """Bind the configured port, or the next free one within MAX_PORT_ATTEMPTS.

    Returns:
        The port actually bound

    Raises:
        OSError: Bind failed for a reason other than the port being in use
        RuntimeError: Every port in the range was in use
    """
    for port_offset in range(MAX_PORT_ATTEMPTS):
        port = configured_port + port_offset
        site = web.TCPSite(runner, host=host, port=port)
        try:
            await site.start()
        except OSError as e:
            if "address already in use" not in str(e).lower():
                logger.exception("Failed to start server on %s:%d", host, port)
                raise
            logger.debug("Port %d in use, trying next port", port)
            continue

        if port != configured_port:
            logger.warning("Configured port %d was in use, using port %d instead", configured_port, port)
        return port

    last_port = configured_port + MAX_PORT_ATTEMPTS - 1
    log_monitoring_event(
        "server.startup.port_exhausted",
        f"No available port in range {configured_port}-{last_port}",
        "CRITICAL",
        details={"host": host, "configured_port": configured_port},
    )
    raise RuntimeError(f"No available port found in range {configured_port}-{last_port}")


async def _serve(config: Any, external_stop_event: asyncio.Event | None = None) -> None:
    """Run the HTTP server and refresh loop until signalled to stop.

    Args:
        config: Server configuration dict
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
    """
    stop_event = external_stop_event or asyncio.Event()
    services = build_services(config)
    app = create_app(services)

    runner = web.AppRunner(app)
    await runner.setup()

    host = get_config_value(config, "server_bind", DEFAULT_WEB_HOST)
    port = await _start_site(runner, host, int(get_config_value(config, "server_port", DEFAULT_WEB_PORT)))

    logger.info("Server started successfully on %s:%d", host, port)
    log_monitoring_event(
        "server.startup.success",
        f"dashboard_lite server started on {host}:{port}",
        "DEBUG",
        details={"host": host, "port": port, "pid": os.getpid()},
    )

    refresher = asyncio.create_task(services.refresh_service.run_periodic(stop_event))

    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    refresher.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await refresher
    await services.refresh_service.stop()

    await runner.cleanup()
    await close_all_clients()
    logger.info("Server shutdown complete")


def start_server(config: Any) -> None:
    """Start the asyncio event loop and HTTP server.

    Args:
        config: dict with keys:
            - data_dir: directory holding config.json and calendars.json
            - server_bind: host to bind (str)
            - server_port: port (int)
            - relay_url: cross-origin relay endpoint ("" fetches feeds directly)
            - fetch_timeout_seconds: per-source fetch+parse bound (float)
            - fetch_concurrency: sources fetched at once (int, 1-8)
            - timezone: IANA timezone for calendar days (None for host local)
            - debug: enable debug logging for dashboard_lite (bool)

    Blocks until SIGINT/SIGTERM is received.
    """
    debug_mode = bool(get_config_value(config, "debug", False))
    configure_lite_logging(debug_mode=debug_mode)
    logger.info("Logging configuration applied: debug_mode=%s", debug_mode)
    logger.debug("Logger levels: %s", get_logging_status())

    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
