"""
Catalog CLI tool.

Operates on a catalog snapshot file without running a server:
- stats: Entity/location counts and persistence health
- query: Filter, sort and paginate entities
- facets: Value counts for fields
- get: Fetch one entity by reference
- remove: Remove one entity by reference
- locations: List registered locations
- ingest: Sync a YAML descriptor file into the catalog

Usage:
    catalogdb stats
    catalogdb query --filter kind=component --order-field metadata.name,asc --limit 50
    catalogdb facets --facet spec.owner --facet metadata.tags
    catalogdb ingest catalog-info.yaml
    catalogdb --snapshot /tmp/catalog.json get component:default/svc-a

Invariants:
    - Output is JSON on stdout; logs go to stderr
    - Exit code 0 on success, 1 on a failed command
    - Mutating commands flush the snapshot before exiting

How to change safely:
    - Add new commands, don't change existing output keys
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from ..config import CatalogSettings
from ..errors import CatalogError
from ..query import OrderField
from ..store import CatalogStore
from .ingest import ingest_file

logger = logging.getLogger(__name__)


class CatalogCLI:
    """Command implementations over one store.

    Example:
        >>> cli = CatalogCLI(store)
        >>> cli.facets(["spec.owner"])
        {'facets': {'spec.owner': [{'value': 'team-x', 'count': 1}]}}
    """

    def __init__(self, store: CatalogStore) -> None:
        self.store = store

    def stats(self) -> dict[str, Any]:
        return self.store.get_stats().to_dict()

    def query(
        self,
        filters: list[str],
        order_fields: list[str],
        offset: int,
        limit: int | None,
    ) -> dict[str, Any]:
        page = self.store.query(
            {
                "filter": filters,
                "orderField": [OrderField.parse(text) for text in order_fields],
                "offset": offset,
                "limit": limit,
            }
        )
        return {
            "items": [entity.to_dict() for entity in page.items],
            "totalItems": page.total_items,
            "pageInfo": page.page_info.model_dump(by_alias=True, exclude_none=True),
        }

    def facets(self, fields: list[str]) -> dict[str, Any]:
        return self.store.facets(fields).model_dump()

    def get(self, ref: str) -> dict[str, Any] | None:
        entity = self.store.get_by_reference(ref)
        return entity.to_dict() if entity else None

    def remove(self, ref: str) -> bool:
        return self.store.remove(ref)

    def locations(self) -> list[dict[str, Any]]:
        return [location.to_dict() for location in self.store.list_locations()]

    def ingest(self, path: str, location_type: str) -> dict[str, Any]:
        return ingest_file(self.store, path, location_type).to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="catalogdb", description="Entity catalog store tool")
    parser.add_argument(
        "--snapshot",
        help="Snapshot file (default: CATALOG_PERSIST_PATH or ~/.catalogdb/catalog.json)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stats", help="Show catalog counts and persistence health")

    query_parser = subparsers.add_parser("query", help="Query entities")
    query_parser.add_argument(
        "--filter", action="append", default=[], help="field=value or field!=value (repeatable)"
    )
    query_parser.add_argument(
        "--order-field", action="append", default=[], help="field[,asc|desc] (repeatable)"
    )
    query_parser.add_argument("--offset", type=int, default=0, help="Pagination offset")
    query_parser.add_argument("--limit", type=int, help="Page size")

    facets_parser = subparsers.add_parser("facets", help="Count values for fields")
    facets_parser.add_argument(
        "--facet", action="append", required=True, help="Dotted field path (repeatable)"
    )

    get_parser = subparsers.add_parser("get", help="Fetch one entity")
    get_parser.add_argument("ref", help="Entity reference, e.g. component:default/svc-a")

    remove_parser = subparsers.add_parser("remove", help="Remove one entity")
    remove_parser.add_argument("ref", help="Entity reference")

    subparsers.add_parser("locations", help="List registered locations")

    ingest_parser = subparsers.add_parser("ingest", help="Sync a YAML descriptor file")
    ingest_parser.add_argument("path", help="Descriptor file")
    ingest_parser.add_argument("--type", default="file", help="Location type (default: file)")

    return parser


def run(argv: Sequence[str] | None = None, settings: CatalogSettings | None = None) -> int:
    """Parse arguments, run one command and print its JSON result.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    settings = settings or CatalogSettings()
    if args.snapshot:
        settings = settings.model_copy(
            update={"persist_path": Path(args.snapshot), "in_memory": False}
        )

    store = CatalogStore.from_settings(settings)
    store.load()
    cli = CatalogCLI(store)
    exit_code = 0

    try:
        if args.command == "stats":
            result: Any = cli.stats()
        elif args.command == "query":
            result = cli.query(args.filter, args.order_field, args.offset, args.limit)
        elif args.command == "facets":
            result = cli.facets(args.facet)
        elif args.command == "get":
            result = cli.get(args.ref)
            if result is None:
                print(f"Entity not found: {args.ref}", file=sys.stderr)
                exit_code = 1
        elif args.command == "remove":
            result = {"removed": cli.remove(args.ref)}
            if not result["removed"]:
                exit_code = 1
        elif args.command == "locations":
            result = cli.locations()
        elif args.command == "ingest":
            result = cli.ingest(args.path, args.type)
        else:
            raise AssertionError(f"Unhandled command {args.command}")
    except (CatalogError, OSError) as e:
        logger.error(f"Command '{args.command}' failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        store.close()
        return 1

    store.close()
    if store.get_stats().dirty:
        print("Error: catalog snapshot could not be saved", file=sys.stderr)
        exit_code = 1
    if result is not None:
        print(json.dumps(result, indent=2, ensure_ascii=False))
    return exit_code
