"""Middleware for the dashboard_lite server."""

from .error_middleware import error_middleware, json_error

__all__ = ["error_middleware", "json_error"]
