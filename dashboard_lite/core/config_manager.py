"""Process configuration for the dashboard_lite server."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from dashboard_lite.calendar.lite_fetcher import DEFAULT_RELAY_URL

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "./data"
DEFAULT_WEB_HOST = "0.0.0.0"
DEFAULT_WEB_PORT = 3000
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
DEFAULT_FETCH_CONCURRENCY = 4
MIN_FETCH_CONCURRENCY = 1
MAX_FETCH_CONCURRENCY = 8


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("#") or "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; using %.1f", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive, got %r; using %.1f", name, raw, default)
        return default
    return value


def clamp_fetch_concurrency(value: int) -> int:
    """Clamp fetch concurrency into the supported 1-8 range."""
    return max(MIN_FETCH_CONCURRENCY, min(MAX_FETCH_CONCURRENCY, value))


class ConfigManager:
    """Manages server configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from environment variables.

        Recognizes:
        - DASHBOARD_DATA_DIR -> 'data_dir' (Path, default ./data)
        - DASHBOARD_WEB_HOST -> 'server_bind' (default 0.0.0.0)
        - DASHBOARD_WEB_PORT -> 'server_port' (int, default 3000)
        - DASHBOARD_RELAY_URL -> 'relay_url' (empty string means direct fetch)
        - DASHBOARD_FETCH_TIMEOUT -> 'fetch_timeout_seconds' (float, default 10)
        - DASHBOARD_FETCH_CONCURRENCY -> 'fetch_concurrency' (int 1-8, default 4)
        - DASHBOARD_TIMEZONE -> 'timezone' (IANA name or None for host local)
        - DASHBOARD_DEBUG -> 'debug' (bool)

        Returns:
            Configuration dictionary with every key present
        """
        relay_url = os.environ.get("DASHBOARD_RELAY_URL")

        return {
            "data_dir": Path(os.environ.get("DASHBOARD_DATA_DIR") or DEFAULT_DATA_DIR),
            "server_bind": os.environ.get("DASHBOARD_WEB_HOST") or DEFAULT_WEB_HOST,
            "server_port": _env_int("DASHBOARD_WEB_PORT", DEFAULT_WEB_PORT),
            "relay_url": DEFAULT_RELAY_URL if relay_url is None else relay_url.strip(),
            "fetch_timeout_seconds": _env_float(
                "DASHBOARD_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT_SECONDS
            ),
            "fetch_concurrency": clamp_fetch_concurrency(
                _env_int("DASHBOARD_FETCH_CONCURRENCY", DEFAULT_FETCH_CONCURRENCY)
            ),
            "timezone": os.environ.get("DASHBOARD_TIMEZONE") or None,
            "debug": os.environ.get("DASHBOARD_DEBUG", "").lower() in ("1", "true", "yes", "on"),
        }

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment.

        This is the main entry point for loading configuration.
        """
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and attribute-style objects."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
