"""
Store module for the catalog.

This module handles:
- The indexed entity/location store (CatalogStore)
- Snapshot file reading and atomic writing
- Debounced flush scheduling

Invariants:
    - The snapshot is the only durability mechanism
    - Mutations within the flush delay collapse into one write
"""

from .catalog_store import CatalogStats, CatalogStore
from .persistence import FlushScheduler, SnapshotState, read_snapshot, write_snapshot

__all__ = [
    "CatalogStats",
    "CatalogStore",
    "FlushScheduler",
    "SnapshotState",
    "read_snapshot",
    "write_snapshot",
]
