"""Route modules for dashboard_lite server."""

from .calendar_routes import register_calendar_routes
from .config_routes import register_config_routes

__all__ = [
    "register_calendar_routes",
    "register_config_routes",
]
