"""Shared HTTP client manager for dashboard_lite.

Keeps one pooled ``httpx.AsyncClient`` per client id so every refresh cycle
reuses connections to the relay instead of opening a client per feed.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

# Global state for shared HTTP clients
_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_health: dict[str, dict[str, float]] = {}
_client_lock: Optional[asyncio.Lock] = None
# Requests in flight per client, and replaced clients waiting for theirs to finish
_in_flight: dict[httpx.AsyncClient, int] = {}
_retired_clients: list[httpx.AsyncClient] = []

DEFAULT_LIMITS = httpx.Limits(
    max_connections=10,
    max_keepalive_connections=4,
)

DEFAULT_TIMEOUT = httpx.Timeout(
    connect=10.0,
    read=30.0,
    write=10.0,
    pool=30.0,
)

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": "dashboard-lite/0.1 (+calendar aggregation)",
    "Accept": "application/json, text/calendar, text/plain, */*",
}

# Recreate client after this many consecutive errors within the timeout below
HEALTH_ERROR_THRESHOLD = 3
HEALTH_TIMEOUT_SECONDS = 300


def _get_lock() -> asyncio.Lock:
    global _client_lock
    if _client_lock is None:
        _client_lock = asyncio.Lock()
    return _client_lock


async def get_shared_client(
    client_id: str = "default",
    limits: Optional[httpx.Limits] = None,
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (allows multiple clients if needed)
        limits: Custom connection limits
        timeout: Custom timeout configuration

    Returns:
        Shared httpx.AsyncClient

    Raises:
        RuntimeError: If client creation fails
    """
    async with _get_lock():
        await _recreate_client_if_unhealthy(client_id)

        if client_id not in _shared_clients or _shared_clients[client_id].is_closed:
            effective_limits = limits or DEFAULT_LIMITS
            effective_timeout = timeout or DEFAULT_TIMEOUT
            try:
                _shared_clients[client_id] = httpx.AsyncClient(
                    limits=effective_limits,
                    timeout=effective_timeout,
                    follow_redirects=True,
                    headers=DEFAULT_HEADERS,
                )
            except Exception as e:
                logger.exception("Failed to create shared HTTP client '%s'", client_id)
                raise RuntimeError(f"Failed to create shared HTTP client: {e}") from e

            _client_health[client_id] = {
                "error_count": 0,
                "last_error_time": 0,
                "created_time": time.time(),
            }
            logger.info(
                "Created shared HTTP client '%s' (max_connections=%s)",
                client_id,
                effective_limits.max_connections,
            )

        return _shared_clients[client_id]


@asynccontextmanager
async def lease_shared_client(client_id: str = "default") -> AsyncIterator[httpx.AsyncClient]:
    """Borrow the shared client for one request.

    A client replaced while leased stays open until its last lease ends, so
    requests already running on it are never cut off.
    """
    client = await get_shared_client(client_id)
    _in_flight[client] = _in_flight.get(client, 0) + 1
    try:
        yield client
    finally:
        remaining = _in_flight.pop(client, 1) - 1
        if remaining:
            _in_flight[client] = remaining
        elif client in _retired_clients:
            _retired_clients.remove(client)
            await _close_client(client, client_id)


async def _close_client(client: httpx.AsyncClient, client_id: str) -> None:
    try:
        if not client.is_closed:
            await client.aclose()
            logger.debug("Closed HTTP client '%s'", client_id)
    except Exception as e:
        logger.warning("Error closing HTTP client '%s': %s", client_id, e)


async def close_all_clients() -> None:
    """Close all shared HTTP clients and clean up resources.

    Called during application shutdown and between tests.
    """
    async with _get_lock():
        for client_id, client in _shared_clients.items():
            await _close_client(client, client_id)
        for client in _retired_clients:
            await _close_client(client, "retired")

        _shared_clients.clear()
        _retired_clients.clear()
        _in_flight.clear()
        _client_health.clear()
        logger.debug("All shared HTTP clients closed")


async def record_client_error(client_id: str = "default") -> None:
    """Record an error for health tracking."""
    async with _get_lock():
        health = _client_health.setdefault(
            client_id, {"error_count": 0, "last_error_time": 0, "created_time": time.time()}
        )
        health["error_count"] += 1
        health["last_error_time"] = time.time()
        logger.debug(
            "Recorded error for client '%s', total errors: %d",
            client_id,
            health["error_count"],
        )


async def record_client_success(client_id: str = "default") -> None:
    """Record a successful operation for health tracking."""
    async with _get_lock():
        if client_id in _client_health:
            _client_health[client_id]["error_count"] = 0


def get_client_health(client_id: str = "default") -> dict[str, float]:
    """Return a copy of the health counters for a client id."""
    return dict(_client_health.get(client_id, {}))


async def _recreate_client_if_unhealthy(client_id: str) -> None:
    """Replace a client that keeps failing so the next call builds a fresh one.

    A client with requests still in flight is retired rather than closed.
    Must be called with the client lock held.
    """
    health = _client_health.get(client_id)
    if health is None:
        return

    should_recreate = (
        health["error_count"] >= HEALTH_ERROR_THRESHOLD
        and (time.time() - health["last_error_time"]) < HEALTH_TIMEOUT_SECONDS
    )

    if should_recreate and client_id in _shared_clients:
        logger.warning(
            "Recreating unhealthy client '%s' after %d consecutive errors",
            client_id,
            int(health["error_count"]),
        )
        client = _shared_clients.pop(client_id)
        if _in_flight.get(client):
            _retired_clients.append(client)
        else:
            await _close_client(client, client_id)
        _client_health.pop(client_id, None)
