"""
Central logging configuration for dashboard_lite.

Keeps dashboard_lite's own modules at INFO (or DEBUG when requested) while
quieting chatty third-party libraries, and provides a small structured
"monitoring event" helper used by the refresh path.
"""

import json
import logging
import os
from typing import Any, Optional

_monitoring_logger = logging.getLogger("dashboard_lite.monitoring")

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for dashboard_lite.

    Args:
        debug_mode: Whether to enable debug logging for dashboard_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        DASHBOARD_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        DASHBOARD_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("DASHBOARD_DEBUG", "").lower() in ("1", "true", "yes", "on")
    env_log_level = os.getenv("DASHBOARD_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a plain handler when __init__._init_logging has not installed one.
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    for logger_name, level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger("dashboard_lite").setLevel(logging.DEBUG if final_debug else logging.INFO)

    if final_debug:
        root_logger.info("Debug logging enabled for dashboard_lite modules")
    else:
        root_logger.debug("Production logging configuration applied")


def log_monitoring_event(
    event: str,
    message: str,
    level: str = "INFO",
    details: Optional[dict[str, Any]] = None,
) -> None:
    """Emit a structured monitoring record.

    The record reads ``[event] message {details-json}`` and carries ``event`` and
    ``details`` as LogRecord attributes for handlers that want them.

    Args:
        event: Short dotted event code (e.g. "refresh.cycle.complete")
        message: Human readable description
        level: Log level name
        details: Additional JSON-serializable context
    """
    log_level = LOG_LEVELS.get(level.upper(), logging.INFO)
    if not _monitoring_logger.isEnabledFor(log_level):
        return

    suffix = ""
    if details:
        suffix = " " + json.dumps(details, default=str, sort_keys=True)

    _monitoring_logger.log(
        log_level,
        "[%s] %s%s",
        event,
        message,
        suffix,
        extra={"event": event, "details": details or {}},
    )


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("dashboard_lite", *NOISY_LOGGERS):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
