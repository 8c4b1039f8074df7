"""ICS feed fetcher for dashboard_lite.

Feeds are requested through a cross-origin relay that wraps the feed body in a
JSON envelope ``{"contents": "..."}``. Some feeds come back as a
``data:text/calendar;base64,...`` URI inside that envelope and are decoded here.
"""

import base64
import binascii
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import httpx

from dashboard_lite.calendar.lite_models import CalendarSource
from dashboard_lite.core.http_client import (
    lease_shared_client,
    record_client_error,
    record_client_success,
)

logger = logging.getLogger(__name__)

DEFAULT_RELAY_URL = "https://api.allorigins.win/get"
DATA_URI_PREFIX = "data:text/calendar"
FETCHER_CLIENT_ID = "ics_fetcher"


class LiteICSFetchError(Exception):
    """Base exception for ICS fetch errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LiteICSRelayError(LiteICSFetchError):
    """The relay (or the feed, when fetched directly) answered with a non-2xx status."""


class LiteICSNetworkError(LiteICSFetchError):
    """Network error during ICS fetch."""


class LiteICSTimeoutError(LiteICSFetchError):
    """Timeout error during ICS fetch."""


class LiteICSEnvelopeError(LiteICSFetchError):
    """The relay response was not a usable ``{"contents": str}`` envelope."""


def build_relay_params(feed_url: str) -> dict[str, str]:
    """Query parameters for the relay; httpx percent-encodes the feed URL."""
    return {"url": feed_url}


def describe_http_error(error: httpx.HTTPError) -> str:
    """Exception class name plus its message, which httpx often leaves empty."""
    detail = str(error)
    return f"{type(error).__name__}: {detail}" if detail else type(error).__name__


def decode_relay_contents(contents: str) -> str:
    """Return ICS text from the envelope's ``contents`` field.

    Plain text is returned unchanged. A ``data:text/calendar`` URI has its
    payload (everything after the first comma) base64-decoded when the header
    declares ``;base64`` and percent-decoded otherwise.

    Raises:
        LiteICSEnvelopeError: If a base64 payload is malformed
    """
    if not contents.startswith(DATA_URI_PREFIX):
        return contents

    header, _, payload = contents.partition(",")
    if ";base64" not in header:
        return unquote(payload)

    try:
        raw = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise LiteICSEnvelopeError(f"Invalid base64 calendar payload: {e}") from e
    return raw.decode("utf-8", errors="replace")


def parse_relay_envelope(body: str) -> str:
    """Extract ICS text from a relay JSON body.

    Raises:
        LiteICSEnvelopeError: On non-JSON bodies, non-object envelopes or a
            missing/non-string ``contents`` field
    """
    try:
        envelope: Any = json.loads(body)
    except json.JSONDecodeError as e:
        raise LiteICSEnvelopeError(f"Malformed relay JSON: {e}") from e

    if not isinstance(envelope, dict):
        raise LiteICSEnvelopeError("Relay envelope is not a JSON object")

    contents = envelope.get("contents")
    if not isinstance(contents, str):
        raise LiteICSEnvelopeError("Relay envelope has no string 'contents' field")

    return decode_relay_contents(contents)


class LiteICSFetcher:
    """Async client that retrieves raw ICS text for one calendar source at a time."""

    def __init__(
        self,
        relay_url: Optional[str] = DEFAULT_RELAY_URL,
        client: Optional[httpx.AsyncClient] = None,
        client_id: str = FETCHER_CLIENT_ID,
    ) -> None:
        """Initialize ICS fetcher.

        Args:
            relay_url: Cross-origin relay endpoint; empty/None fetches feeds directly
            client: Optional client to use instead of the shared pool (tests inject one)
            client_id: Shared client identifier used for health tracking
        """
        self.relay_url = relay_url or None
        self._client = client
        self._client_id = client_id

        logger.debug("ICS fetcher initialized (relay: %s)", self.relay_url or "direct")

    @asynccontextmanager
    async def _client_lease(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with lease_shared_client(self._client_id) as client:
            yield client

    @staticmethod
    def validate_feed_url(url: str) -> bool:
        """Accept only absolute http(s) URLs with a hostname."""
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)

    async def fetch(self, source: CalendarSource) -> str:
        """Download raw ICS text for a calendar source.

        Single attempt, no retry. Callers bound the overall duration.

        Args:
            source: Calendar source whose ``url`` is fetched

        Returns:
            ICS text

        Raises:
            LiteICSRelayError: Non-2xx response (``status_code`` set)
            LiteICSTimeoutError: Request timed out
            LiteICSNetworkError: Connection-level failure
            LiteICSEnvelopeError: Unusable relay envelope
            LiteICSFetchError: Invalid feed URL
        """
        if not self.validate_feed_url(source.url):
            raise LiteICSFetchError(f"Invalid feed URL for {source.name!r}: {source.url!r}")

        try:
            async with self._client_lease() as client:
                if self.relay_url:
                    logger.debug("Fetching %r via relay %s", source.name, self.relay_url)
                    response = await client.get(self.relay_url, params=build_relay_params(source.url))
                else:
                    logger.debug("Fetching %r directly from %s", source.name, source.url)
                    response = await client.get(source.url)
        except httpx.TimeoutException as e:
            await record_client_error(self._client_id)
            raise LiteICSTimeoutError(f"Timeout fetching {source.name!r}: {describe_http_error(e)}") from e
        except httpx.HTTPError as e:
            await record_client_error(self._client_id)
            raise LiteICSNetworkError(
                f"Network error fetching {source.name!r}: {describe_http_error(e)}"
            ) from e

        # A response of any status means the transport worked
        await record_client_success(self._client_id)

        if not response.is_success:
            raise LiteICSRelayError(
                f"HTTP {response.status_code} fetching {source.name!r}",
                status_code=response.status_code,
            )

        if self.relay_url is None:
            return response.text

        try:
            return parse_relay_envelope(response.text)
        except LiteICSEnvelopeError as e:
            e.status_code = response.status_code
            raise
