"""Admin API routes: calendar feeds, dashboard config and weather locations."""

from __future__ import annotations

import logging
from typing import Optional

from aiohttp import web

from dashboard_lite.api.routes._request import read_json_object
from dashboard_lite.domain.config_store import DashboardConfigStore
from dashboard_lite.domain.refresh_service import AgendaRefreshService

logger = logging.getLogger(__name__)


def register_config_routes(
    app: web.Application,
    store: DashboardConfigStore,
    refresh_service: Optional[AgendaRefreshService] = None,
) -> None:
    """Register the admin CRUD routes.

    Changes to calendars or the config schedule a background refresh (skipped
    when one is already running) so the agenda picks them up.

    Args:
        app: aiohttp web application
        store: Configuration store backing every route
        refresh_service: Optional refresh service poked after changes
    """

    def _schedule_refresh() -> None:
        if refresh_service is not None:
            refresh_service.tick()

    async def list_calendars(_request: web.Request) -> web.Response:
        return web.json_response([c.to_json_dict() for c in store.list_calendars()])

    async def create_calendar(request: web.Request) -> web.Response:
        data = await read_json_object(request)
        interval = data.get("refreshIntervalMs")
        if interval is None:
            interval = data.get("refreshInterval")
        source = store.add_calendar(
            name=data.get("name") or "",
            url=data.get("url") or "",
            refresh_interval_ms=interval,
        )
        _schedule_refresh()
        return web.json_response(source.to_json_dict())

    async def update_calendar(request: web.Request) -> web.Response:
        data = await read_json_object(request)
        source = store.update_calendar(request.match_info["calendar_id"], data)
        _schedule_refresh()
        return web.json_response(source.to_json_dict())

    async def delete_calendar(request: web.Request) -> web.Response:
        store.delete_calendar(request.match_info["calendar_id"])
        _schedule_refresh()
        return web.json_response({"success": True})

    async def get_config(_request: web.Request) -> web.Response:
        return web.json_response(store.get_config().to_json_dict())

    async def save_config(request: web.Request) -> web.Response:
        data = await read_json_object(request)
        config = store.save_config(data)
        _schedule_refresh()
        return web.json_response({"success": True, "config": config.to_json_dict()})

    async def list_weather_locations(_request: web.Request) -> web.Response:
        return web.json_response([loc.to_json_dict() for loc in store.list_weather_locations()])

    async def create_weather_location(request: web.Request) -> web.Response:
        data = await read_json_object(request)
        location = store.add_weather_location(
            name=data.get("name") or "",
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            country=data.get("country") or "",
            timezone=data.get("timezone") or "",
        )
        return web.json_response(location.to_json_dict())

    async def delete_weather_location(request: web.Request) -> web.Response:
        store.delete_weather_location(request.match_info["location_id"])
        return web.json_response({"success": True})

    async def set_default_weather_location(request: web.Request) -> web.Response:
        data = await read_json_object(request)
        default = store.set_default_weather_location(data.get("locationId"))
        return web.json_response({"success": True, "defaultLocation": default})

    app.router.add_get("/api/calendars", list_calendars)
    app.router.add_post("/api/calendars", create_calendar)
    app.router.add_patch("/api/calendars/{calendar_id}", update_calendar)
    app.router.add_delete("/api/calendars/{calendar_id}", delete_calendar)
    app.router.add_get("/api/config", get_config)
    app.router.add_post("/api/config", save_config)
    app.router.add_get("/api/weather/locations", list_weather_locations)
    app.router.add_post("/api/weather/locations", create_weather_location)
    app.router.add_delete("/api/weather/locations/{location_id}", delete_weather_location)
    app.router.add_post("/api/weather/default-location", set_default_weather_location)
