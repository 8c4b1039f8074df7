"""Maps domain exceptions raised by route handlers to JSON error responses."""

import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

from dashboard_lite.domain.config_store import (
    CalendarNotFoundError,
    ConfigValidationError,
    WeatherLocationNotFoundError,
)

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def json_error(message: str, status: int, **extra: object) -> web.Response:
    """Build a ``{"error": message}`` JSON response."""
    return web.json_response({"error": message, **extra}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Translate store errors to 400/404 and unexpected errors to 500.

    aiohttp's own HTTP exceptions (404 for unknown routes, 405, ...) pass through.
    """
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except ConfigValidationError as e:
        logger.info("%s %s rejected: %s", request.method, request.path, e)
        return json_error(str(e), 400, details=e.errors)
    except (CalendarNotFoundError, WeatherLocationNotFoundError) as e:
        return json_error(str(e), 404)
    except Exception:
        logger.exception("Unhandled error in %s %s", request.method, request.path)
        return json_error("internal server error", 500)
