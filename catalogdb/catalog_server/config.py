"""
Configuration for the catalog store.

Uses pydantic-settings for environment variable loading. Every setting
has a default suitable for local development.

Invariants:
    - in_memory=True means no filesystem access at all
    - flush_delay_seconds is strictly positive
    - default_page_size is at least 1

How to change safely:
    - Add new settings with defaults that keep existing deployments working
    - Keep the CATALOG_ prefix for all environment variables
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_PERSIST_PATH = Path.home() / ".catalogdb" / "catalog.json"


class CatalogSettings(BaseSettings):
    """Catalog store configuration loaded from environment."""

    # Persistence
    persist_path: Path = Field(
        default=DEFAULT_PERSIST_PATH, description="Snapshot file location"
    )
    in_memory: bool = Field(default=False, description="Disable persistence entirely")
    flush_delay_seconds: float = Field(
        default=1.0, gt=0, description="Debounce delay before writing the snapshot"
    )

    # Queries
    default_page_size: int = Field(default=20, ge=1, description="Default query limit")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: Literal["json", "text"] = Field(default="text", description="Log format")

    model_config = {"env_prefix": "CATALOG_"}

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level '{value}'")
        return level

    @property
    def resolved_persist_path(self) -> Path | None:
        """Snapshot path, or None when running in memory."""
        if self.in_memory:
            return None
        return self.persist_path.expanduser()

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "Catalog configuration loaded",
            extra={
                "persist_path": str(self.resolved_persist_path),
                "flush_delay_seconds": self.flush_delay_seconds,
                "default_page_size": self.default_page_size,
                "log_level": self.log_level,
            },
        )
