"""Command-line entry for dashboard_lite."""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run_server


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for dashboard_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="dashboard_lite",
        description="Dashboard Lite - local dashboard server with calendar aggregation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m dashboard_lite                      # Start server on default port (3000)
  python -m dashboard_lite --port 8080          # Start server on port 8080
  python -m dashboard_lite --data-dir /srv/dash # Use another data directory
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 3000, or from DASHBOARD_WEB_PORT env var)",
    )
    parser.add_argument(
        "--host",
        metavar="HOST",
        help="Interface to bind (default: 0.0.0.0, or from DASHBOARD_WEB_HOST env var)",
    )
    parser.add_argument(
        "--data-dir",
        metavar="DIR",
        help="Directory holding config.json and calendars.json (default: ./data)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging for dashboard_lite modules",
    )

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Run the dashboard_lite CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    run_server(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
