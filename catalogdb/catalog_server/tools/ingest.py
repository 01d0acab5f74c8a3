"""
Descriptor ingestion for the catalog store.

Reads catalog descriptor files (multi-document YAML) and syncs the
entities they describe into a store under one location:

    ---
    kind: Component
    metadata:
      name: svc-a
    spec:
      owner: team-x
    ---
    kind: API
    metadata:
      name: svc-a-api

Invariants:
    - Every entity from a location is tagged with that location's key
    - After a sync, the location owns exactly the entities it described
    - Descriptors are validated before the store is touched

How to change safely:
    - Keep location keys stable ("<type>:<target>"); changing the format
      orphans entities ingested by older versions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..entity import Location, stringify_entity_ref
from ..errors import InvalidEntityError
from ..store import CatalogStore

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of syncing one location.

    Attributes:
        location: Location the entities were ingested under
        upserted: References written by this sync
        removed: References that were no longer described and got removed
    """

    location: Location
    upserted: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location.to_dict(),
            "upserted": self.upserted,
            "removed": self.removed,
        }


def location_key(location_type: str, target: str) -> str:
    """Key used to tag entities produced by a location."""
    return f"{location_type}:{target}"


def load_descriptors(text: str) -> list[dict[str, Any]]:
    """Parse multi-document YAML into descriptor mappings.

    Empty documents are skipped.

    Raises:
        InvalidEntityError: If the YAML is invalid or a document is not a mapping
    """
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise InvalidEntityError(f"Invalid descriptor YAML: {e}") from e

    descriptors = []
    for index, document in enumerate(documents):
        if document is None:
            continue
        if not isinstance(document, dict):
            raise InvalidEntityError(
                f"Descriptor document {index} is a {type(document).__name__}, expected a mapping"
            )
        descriptors.append(document)
    return descriptors


def ingest_location(
    store: CatalogStore,
    location_type: str,
    target: str,
    descriptors: list[dict[str, Any]],
) -> IngestResult:
    """Replace a location's entity set with the given descriptors.

    Registers the location if it is new. Entities previously ingested from
    the location but absent from ``descriptors`` are removed.

    Args:
        store: Store to sync into
        location_type: Location type, e.g. "file"
        target: Location target, e.g. a file path
        descriptors: Entity descriptor mappings

    Returns:
        IngestResult listing written and removed references

    Raises:
        InvalidEntityError: If any descriptor lacks kind or metadata.name, or
            carries a uid that belongs to another reference
    """
    # Validate everything first so a bad document leaves the store untouched
    entities = [CatalogStore.validate_entity(descriptor) for descriptor in descriptors]
    for entity in entities:
        holder = store.get_by_uid(entity.metadata.uid) if entity.metadata.uid else None
        if holder is not None and stringify_entity_ref(holder) != stringify_entity_ref(entity):
            raise InvalidEntityError(
                f"uid already assigned to {stringify_entity_ref(holder)}",
                errors=[f"metadata.uid: already assigned to {stringify_entity_ref(holder)}"],
            )

    location = store.find_location(location_type, target)
    if location is None:
        location = store.add_location(location_type, target)

    key = location_key(location_type, target)
    result = IngestResult(location=location)

    previous = set(store.refs_for_location(key))
    for entity in entities:
        saved = store.upsert(entity, location_key=key)
        result.upserted.append(stringify_entity_ref(saved))

    for ref in sorted(previous - set(result.upserted)):
        if store.remove(ref):
            result.removed.append(ref)

    logger.info(
        "Ingested location",
        extra={
            "location_key": key,
            "upserted": len(result.upserted),
            "removed": len(result.removed),
        },
    )
    return result


def ingest_file(store: CatalogStore, path: str, location_type: str = "file") -> IngestResult:
    """Read a descriptor file and ingest it as a location.

    The location target is the absolute, resolved path, so any spelling of
    the same file maps to one location.
    """
    target = Path(path).resolve()
    descriptors = load_descriptors(target.read_text(encoding="utf-8"))
    return ingest_location(store, location_type, str(target), descriptors)
