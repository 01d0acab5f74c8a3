"""
Catalog store - Main entry point.

Loads settings from the environment, configures logging and runs one
catalog CLI command against the configured snapshot.

Usage:
    python -m catalogdb.catalog_server.main stats
    CATALOG_PERSIST_PATH=/var/lib/catalog/catalog.json catalogdb query --limit 5

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Logging is configured before the store is touched
    - Invalid settings exit with status 1 before any file access
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
from pydantic import ValidationError

from .config import CatalogSettings
from .tools.catalog_cli import run

logger = logging.getLogger(__name__)


def setup_logging(settings: CatalogSettings) -> None:
    """Configure logging based on settings.

    Args:
        settings: Catalog settings
    """
    level = getattr(logging, settings.log_level, logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # stderr, so command output on stdout stays machine readable
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def main() -> None:
    """Main entry point."""
    try:
        settings = CatalogSettings()
    except ValidationError as e:
        print(f"Invalid catalog configuration:\n{e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings)
    settings.log_config()
    sys.exit(run(sys.argv[1:], settings))


if __name__ == "__main__":
    main()
