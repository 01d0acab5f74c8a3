"""
Tools for the catalog store.

- ingest: Sync YAML descriptor files into a store as locations
- catalog_cli: Command line access to a catalog snapshot
"""

from .catalog_cli import CatalogCLI, build_parser, run
from .ingest import IngestResult, ingest_file, ingest_location, load_descriptors, location_key

__all__ = [
    "CatalogCLI",
    "IngestResult",
    "build_parser",
    "ingest_file",
    "ingest_location",
    "load_descriptors",
    "location_key",
    "run",
]
