"""
Error types for the catalog store.

This module defines the exceptions raised by the store:
- CatalogError: Base exception
- InvalidEntityError: Entity payload is missing identity fields
- InvalidLocationError: Location payload is incomplete
- InvalidQueryError: Pagination or ordering values are invalid
- SnapshotError: Snapshot file could not be read or written

Invariants:
    - All errors inherit from CatalogError
    - Errors carry a code for programmatic handling
    - Not-found is never an error
"""

from __future__ import annotations

from typing import Any


class CatalogError(Exception):
    """Base exception for all catalog store errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CATALOG_ERROR"
        self.details = details or {}


class InvalidEntityError(CatalogError):
    """Entity failed identity validation.

    Raised when:
    - kind is missing or empty
    - metadata.name is missing or empty
    - A descriptor document is not a mapping
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(
            message,
            code="INVALID_ENTITY",
            details={"errors": errors or []},
        )
        self.errors = errors or []


class InvalidLocationError(CatalogError):
    """Location type or target is missing."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_LOCATION")


class InvalidQueryError(CatalogError):
    """Query parameters are out of range."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(
            message,
            code="INVALID_QUERY",
            details={"errors": errors or []},
        )
        self.errors = errors or []


class SnapshotError(CatalogError):
    """Snapshot file could not be read or written.

    Raised by the persistence helpers only. The store catches it at its
    boundary and logs it instead of propagating it to callers.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, code="SNAPSHOT_ERROR", details={"path": path})
        self.path = path
