"""dashboard_lite - local dashboard server with multi-calendar agenda aggregation.

Top-level imports stay light: the server stack is imported only when
``run_server`` is called.
"""

__version__ = "0.1.0"

from typing import Any, Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Sets a colorized formatter and level so that startup messages are visible
    on the console. Callers may adjust the level later (e.g. from config).

    Honors the DASHBOARD_DEBUG environment variable (truthy values: "1",
    "true", "yes", "on"), which forces DEBUG verbosity.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("DASHBOARD_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none are present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message, with only the level colorized
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def build_config(args: Optional[Any] = None) -> dict[str, Any]:
    """Resolve server configuration from .env, environment and CLI overrides.

    Args:
        args: Optional argparse namespace with port, host, data_dir, debug

    Returns:
        Configuration dict accepted by ``dashboard_lite.api.server.start_server``
    """
    import logging
    from pathlib import Path

    from dashboard_lite.core.config_manager import ConfigManager

    logger = logging.getLogger(__name__)
    cfg = ConfigManager().load_full_config()

    if args is None:
        return cfg

    port = getattr(args, "port", None)
    if port is not None:
        cfg["server_port"] = int(port)
        logger.debug("Applied command line port override: %d", cfg["server_port"])

    host = getattr(args, "host", None)
    if host:
        cfg["server_bind"] = host

    data_dir = getattr(args, "data_dir", None)
    if data_dir:
        cfg["data_dir"] = Path(data_dir)

    if getattr(args, "debug", False):
        cfg["debug"] = True

    return cfg


def run_server(args: Optional[Any] = None) -> None:
    """Start the dashboard_lite server.

    Initializes console logging from DASHBOARD_LOG_LEVEL, resolves the
    configuration (env, .env file, then command line overrides) and blocks in
    ``start_server`` until SIGINT/SIGTERM.

    Args:
        args: Optional command line arguments namespace (--port, --host, --data-dir, --debug)
    """
    import logging
    import os

    _init_logging(os.environ.get("DASHBOARD_LOG_LEVEL"))
    logger = logging.getLogger(__name__)

    cfg = build_config(args)
    logger.info("Starting dashboard_lite on %s:%s", cfg["server_bind"], cfg["server_port"])
    logger.debug(
        "Resolved configuration (diagnostic): %s",
        {k: cfg.get(k) for k in ("data_dir", "server_bind", "server_port", "relay_url", "timezone")},
    )

    from dashboard_lite.api.server import start_server

    start_server(cfg)
