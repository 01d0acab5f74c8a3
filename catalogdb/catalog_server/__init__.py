"""
Catalog Server - In-process entity catalog store.

This package implements an indexed object store for catalog entities:
- Entities (kind + metadata + spec) addressed by reference and uid
- Locations describing the sources that produced entities
- Filtered, sorted and paginated queries with value facets
- A single JSON snapshot file as the durability mechanism

Architecture:
    ┌─────────────┐     ┌──────────────────┐     ┌─────────────────┐
    │  REST layer │────▶│   CatalogStore   │────▶│  Query / Facets │
    │  / ingest   │     │ (ref + uid index)│     │    evaluator    │
    └─────────────┘     └────────┬─────────┘     └─────────────────┘
                                 │ debounced flush
                                 ▼
                        ┌──────────────────┐
                        │  snapshot (JSON) │
                        └──────────────────┘

Invariants:
    - One entity per reference (kind:namespace/name)
    - uid survives re-upserts of the same reference
    - etag changes on every mutation
    - Reference and uid indices are always consistent

How to change safely:
    - Keep the snapshot layout backward compatible (entities + locations)
    - Add new query roots in query/fields.py only
    - Never touch the filesystem when no persist path is configured

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
