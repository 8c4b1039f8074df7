"""Request body helpers shared by the route modules."""

import json
from typing import Any

from aiohttp import web

from dashboard_lite.domain.config_store import ConfigValidationError


async def read_json_object(request: web.Request) -> dict[str, Any]:
    """Return the request body as a JSON object.

    Raises:
        ConfigValidationError: Body is not valid JSON or not an object
    """
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigValidationError(f"Invalid JSON body: {e}") from e
    if not isinstance(data, dict):
        raise ConfigValidationError("Request body must be a JSON object")
    return data
