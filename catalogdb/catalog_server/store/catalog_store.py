"""
In-memory catalog store with JSON snapshot persistence.

This module manages the indexed entity catalog:
- Entities keyed by reference (kind:namespace/name) and by uid
- Locations keyed by id
- Queries, facets and bulk reads over the entity set
- Debounced persistence to a single snapshot file

Invariants:
    - At most one entity per reference
    - A uid maps to exactly one indexed entity
    - Both indices change together; validation runs before any index change
    - etag changes on every successful upsert of a reference
    - No filesystem access when persist_path is None

How to change safely:
    - Route every index change through _index/_unindex
    - Call _schedule_flush after every mutation that changed state
    - Never hand out indexed objects; return copies

Thread safety:
    Callers must serialize access; the store offers no concurrency control
    for them. The internal lock only keeps the flush timer thread from
    reading the indices while a mutation resizes them.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from ..config import CatalogSettings
from ..entity import (
    DEFAULT_NAMESPACE,
    Entity,
    EntityEnvelope,
    Location,
    make_entity_ref,
    parse_entity_ref,
    stringify_entity_ref,
)
from ..errors import InvalidEntityError, InvalidLocationError, InvalidQueryError, SnapshotError
from ..query import (
    EntitiesQuery,
    EntitiesResponse,
    EntityFacetsResponse,
    apply_filters,
    compute_facets,
    paginate,
    sort_entities,
)
from .persistence import FlushScheduler, SnapshotState, TimerFactory, read_snapshot, write_snapshot

logger = logging.getLogger(__name__)


@dataclass
class CatalogStats:
    """Catalog counts and persistence health.

    Attributes:
        entity_count: Number of indexed entities
        location_count: Number of registered locations
        persistent: Whether a snapshot path is configured
        dirty: Whether there are unflushed mutations
        flush_pending: Whether a deferred flush is scheduled
        last_flushed_at: Unix time of the last successful flush
        last_flush_error: Message of the last failed flush, cleared on success
        flush_failures: Consecutive failed flushes
    """

    entity_count: int
    location_count: int
    persistent: bool = False
    dirty: bool = False
    flush_pending: bool = False
    last_flushed_at: float | None = None
    last_flush_error: str | None = None
    flush_failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class CatalogStore:
    """Indexed entity catalog.

    Example:
        >>> store = CatalogStore("/var/lib/catalog/catalog.json")
        >>> store.load()
        >>> entity = store.upsert({
        ...     "kind": "Component",
        ...     "metadata": {"name": "svc-a"},
        ...     "spec": {"owner": "team-x"},
        ... })
        >>> store.get_by_reference("component:default/svc-a").metadata.uid == entity.metadata.uid
        True
        >>> store.close()
    """

    def __init__(
        self,
        persist_path: str | Path | None = None,
        flush_delay: float = 1.0,
        default_page_size: int = 20,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            persist_path: Snapshot file; None keeps the store purely in memory
            flush_delay: Seconds to wait after the last mutation before writing
            default_page_size: Query limit used when a query does not set one
            timer_factory: Optional timer builder for the flush scheduler
        """
        self.persist_path = Path(persist_path) if persist_path is not None else None
        self.default_page_size = default_page_size

        self._entities: dict[str, EntityEnvelope] = {}
        self._entities_by_uid: dict[str, EntityEnvelope] = {}
        self._locations: dict[str, Location] = {}
        self._lock = threading.RLock()

        self._dirty = False
        self._last_flushed_at: float | None = None
        self._last_flush_error: str | None = None
        self._flush_failures = 0
        self._scheduler: FlushScheduler | None = None
        if self.persist_path is not None:
            self._scheduler = FlushScheduler(flush_delay, self.flush, timer_factory)

    @classmethod
    def from_settings(cls, settings: CatalogSettings) -> CatalogStore:
        """Build a store from settings."""
        return cls(
            persist_path=settings.resolved_persist_path,
            flush_delay=settings.flush_delay_seconds,
            default_page_size=settings.default_page_size,
        )

    def __enter__(self) -> CatalogStore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- Persistence ---

    def load(self) -> None:
        """Replace the in-memory state with the snapshot contents.

        A missing snapshot leaves the store empty. A snapshot that cannot be
        read or decoded is logged and the store is emptied but stays usable.
        """
        if self.persist_path is None:
            return

        try:
            state = read_snapshot(self.persist_path)
        except SnapshotError as e:
            logger.error(
                f"Failed to load catalog snapshot: {e.message}",
                extra={"path": str(self.persist_path)},
            )
            state = SnapshotState()

        if state is None:
            logger.debug(f"No catalog snapshot at {self.persist_path}, starting empty")
            state = SnapshotState()

        with self._lock:
            self._entities.clear()
            self._entities_by_uid.clear()
            self._locations.clear()
            for envelope in state.entities:
                uid = envelope.entity.metadata.uid
                holder = self._entities_by_uid.get(uid) if uid else None
                if holder is not None:
                    logger.warning(
                        "Skipping snapshot entity with a duplicate uid",
                        extra={
                            "uid": uid,
                            "kept": stringify_entity_ref(holder.entity),
                            "skipped": stringify_entity_ref(envelope.entity),
                        },
                    )
                    continue
                self._index(envelope)
            for location in state.locations:
                self._locations[location.id] = location

        logger.info(
            f"Loaded {len(self._entities)} entities from {self.persist_path}",
            extra={"entities": len(self._entities), "locations": len(self._locations)},
        )

    def flush(self) -> bool:
        """Write the snapshot now if there are unflushed mutations.

        Failures are logged and recorded in get_stats(); the store stays
        dirty so a later flush retries.

        Returns:
            True if a snapshot was written
        """
        if self.persist_path is None:
            return False

        with self._lock:
            if not self._dirty:
                return False
            state = SnapshotState(
                entities=list(self._entities.values()),
                locations=list(self._locations.values()),
            )
            self._dirty = False

        try:
            write_snapshot(self.persist_path, state)
        except SnapshotError as e:
            with self._lock:
                self._dirty = True
                self._last_flush_error = e.message
                self._flush_failures += 1
            logger.error(
                f"Failed to save catalog snapshot: {e.message}",
                extra={"path": str(self.persist_path), "failures": self._flush_failures},
            )
            return False

        with self._lock:
            self._last_flushed_at = time.time()
            self._last_flush_error = None
            self._flush_failures = 0
        logger.debug(
            "Catalog snapshot saved",
            extra={"entities": len(state.entities), "locations": len(state.locations)},
        )
        return True

    def close(self, flush: bool = True) -> None:
        """Cancel the pending flush and optionally write one final snapshot."""
        if self._scheduler is not None:
            self._scheduler.cancel()
        if flush:
            self.flush()

    def _schedule_flush(self) -> None:
        if self._scheduler is None:
            return
        with self._lock:
            self._dirty = True
        self._scheduler.arm()

    # --- Indexing ---

    def _index(self, envelope: EntityEnvelope) -> None:
        ref = stringify_entity_ref(envelope.entity)
        previous = self._entities.get(ref)
        if previous is not None:
            self._unindex(previous)

        uid = envelope.entity.metadata.uid
        if uid:
            self._entities_by_uid[uid] = envelope

        self._entities[ref] = envelope

    def _unindex(self, envelope: EntityEnvelope) -> None:
        ref = stringify_entity_ref(envelope.entity)
        if self._entities.get(ref) is envelope:
            del self._entities[ref]

        uid = envelope.entity.metadata.uid
        if uid and self._entities_by_uid.get(uid) is envelope:
            del self._entities_by_uid[uid]

    @staticmethod
    def validate_entity(entity: Entity | Mapping[str, Any]) -> Entity:
        """Validate identity fields and return a private copy.

        Values are normalized to their JSON form (dates become ISO strings,
        tuples become lists) so a stored entity filters and sorts the same
        before and after a snapshot reload.
        """
        if isinstance(entity, Entity):
            payload: Any = entity.model_dump(mode="json", by_alias=True, exclude_unset=True)
        elif isinstance(entity, Mapping):
            try:
                payload = json.loads(json.dumps(dict(entity), default=to_jsonable_python))
            except (TypeError, ValueError) as e:
                raise InvalidEntityError(
                    "Entity is not JSON serializable", errors=[str(e)]
                ) from e
        else:
            raise InvalidEntityError(
                f"Expected an entity or mapping, got {type(entity).__name__}"
            )

        try:
            candidate = Entity.model_validate(payload)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise InvalidEntityError("Entity is malformed", errors=errors) from e

        errors = []
        if not candidate.kind:
            errors.append("kind: must not be empty")
        if not candidate.metadata.name:
            errors.append("metadata.name: must not be empty")
        if errors:
            raise InvalidEntityError("Entity is missing identity fields", errors=errors)
        return candidate

    @staticmethod
    def _new_etag(previous: str | None) -> str:
        etag = uuid.uuid4().hex
        while etag == previous:
            etag = uuid.uuid4().hex
        return etag

    @staticmethod
    def _normalize_ref(ref: str) -> str:
        parsed = parse_entity_ref(ref)
        if parsed.kind is None:
            return ref
        return make_entity_ref(parsed.kind, parsed.namespace, parsed.name)

    # --- Mutations ---

    def upsert(
        self,
        entity: Entity | Mapping[str, Any],
        location_key: str | None = None,
    ) -> Entity:
        """Create or replace the entity at its reference.

        Args:
            entity: Entity model or descriptor mapping
            location_key: Optional key of the location that produced it

        Returns:
            Copy of the stored entity with namespace, uid and etag filled in

        Raises:
            InvalidEntityError: If kind or metadata.name is missing, or the
                uid is already assigned to another reference
        """
        entity = self.validate_entity(entity)
        meta = entity.metadata
        meta.namespace = meta.namespace or DEFAULT_NAMESPACE

        with self._lock:
            ref = stringify_entity_ref(entity)
            previous = self._entities.get(ref)
            if meta.uid:
                holder = self._entities_by_uid.get(meta.uid)
                if holder is not None and holder is not previous:
                    holder_ref = stringify_entity_ref(holder.entity)
                    raise InvalidEntityError(
                        f"uid already assigned to {holder_ref}",
                        errors=[f"metadata.uid: already assigned to {holder_ref}"],
                    )
            else:
                inherited = previous.entity.metadata.uid if previous is not None else None
                meta.uid = inherited or str(uuid.uuid4())
            meta.etag = self._new_etag(previous.entity.metadata.etag if previous else None)

            self._index(EntityEnvelope(entity=entity, location_key=location_key))

        self._schedule_flush()
        logger.debug(
            "Upserted entity",
            extra={"ref": ref, "uid": meta.uid, "location_key": location_key},
        )
        return entity.model_copy(deep=True)

    def remove(self, ref: str) -> bool:
        """Remove the entity at a reference.

        Returns:
            True if an entity was removed
        """
        with self._lock:
            envelope = self._entities.get(self._normalize_ref(ref))
            if envelope is None:
                return False
            self._unindex(envelope)

        self._schedule_flush()
        return True

    def remove_by_uid(self, uid: str) -> bool:
        """Remove the entity with a uid.

        Returns:
            True if an entity was removed
        """
        with self._lock:
            envelope = self._entities_by_uid.get(uid)
            if envelope is None:
                return False
            self._unindex(envelope)

        self._schedule_flush()
        return True

    def remove_by_location(self, location_key: str) -> int:
        """Remove every entity produced by a location.

        Returns:
            Number of entities removed
        """
        with self._lock:
            doomed = [
                envelope
                for envelope in self._entities.values()
                if envelope.location_key == location_key
            ]
            for envelope in doomed:
                self._unindex(envelope)

        if doomed:
            self._schedule_flush()
        logger.debug(
            "Removed entities by location",
            extra={"location_key": location_key, "removed": len(doomed)},
        )
        return len(doomed)

    # --- Lookups ---

    def get_by_reference(self, ref: str) -> Entity | None:
        """Get an entity by reference, or None."""
        envelope = self._entities.get(self._normalize_ref(ref))
        return envelope.entity.model_copy(deep=True) if envelope else None

    def get_by_uid(self, uid: str) -> Entity | None:
        """Get an entity by uid, or None."""
        envelope = self._entities_by_uid.get(uid)
        return envelope.entity.model_copy(deep=True) if envelope else None

    def get_by_kind_namespace_name(self, kind: str, namespace: str, name: str) -> Entity | None:
        """Get an entity by its reference parts, or None."""
        return self.get_by_reference(make_entity_ref(kind, namespace, name))

    def get_by_refs(self, refs: Iterable[str]) -> list[Entity]:
        """Get several entities by reference, skipping unknown ones."""
        entities = []
        for ref in refs:
            entity = self.get_by_reference(ref)
            if entity is not None:
                entities.append(entity)
        return entities

    def refs_for_location(self, location_key: str) -> list[str]:
        """References of the entities tagged with a location key."""
        return [
            ref
            for ref, envelope in list(self._entities.items())
            if envelope.location_key == location_key
        ]

    def get_all_entities(self) -> list[Entity]:
        """Get every entity, in index order."""
        return [envelope.entity.model_copy(deep=True) for envelope in list(self._entities.values())]

    # --- Queries ---

    def _coerce_query(self, spec: EntitiesQuery | Mapping[str, Any] | None) -> EntitiesQuery:
        if spec is None:
            return EntitiesQuery()
        if isinstance(spec, EntitiesQuery):
            return spec
        try:
            return EntitiesQuery.model_validate(dict(spec))
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise InvalidQueryError("Query is malformed", errors=errors) from e

    def query(self, spec: EntitiesQuery | Mapping[str, Any] | None = None) -> EntitiesResponse:
        """Filter, sort and paginate the catalog.

        Args:
            spec: Query model or mapping (filter, orderField, offset, limit)

        Returns:
            One page of copies plus the total filtered count and cursors

        Raises:
            InvalidQueryError: If a mapping has out-of-range values
        """
        query = self._coerce_query(spec)
        items = [envelope.entity for envelope in list(self._entities.values())]
        items = apply_filters(items, query.filter)
        if query.order_fields:
            items = sort_entities(items, query.order_fields)

        page = paginate(items, query.offset, query.limit or self.default_page_size)
        page.items = [entity.model_copy(deep=True) for entity in page.items]
        return page

    def facets(self, fields: Iterable[str]) -> EntityFacetsResponse:
        """Count value frequencies for each field across all entities."""
        entities = [envelope.entity for envelope in list(self._entities.values())]
        return compute_facets(entities, fields)

    # --- Locations ---

    def add_location(self, type: str, target: str) -> Location:
        """Register a location.

        Raises:
            InvalidLocationError: If type or target is empty
        """
        if not type or not target:
            raise InvalidLocationError("type and target are required")

        location = Location(id=str(uuid.uuid4()), type=type, target=target)
        with self._lock:
            self._locations[location.id] = location
        self._schedule_flush()
        logger.info(
            "Registered location",
            extra={"location_id": location.id, "type": type, "target": target},
        )
        return location.model_copy()

    def remove_location(self, location_id: str) -> bool:
        """Unregister a location. Its entities are left in place."""
        with self._lock:
            removed = self._locations.pop(location_id, None) is not None
        if removed:
            self._schedule_flush()
        return removed

    def get_location(self, location_id: str) -> Location | None:
        location = self._locations.get(location_id)
        return location.model_copy() if location else None

    def find_location(self, type: str, target: str) -> Location | None:
        """Get the location registered for a type and target, or None."""
        for location in list(self._locations.values()):
            if location.type == type and location.target == target:
                return location.model_copy()
        return None

    def list_locations(self) -> list[Location]:
        return [location.model_copy() for location in list(self._locations.values())]

    # --- Stats ---

    def get_stats(self) -> CatalogStats:
        """Counts plus persistence health."""
        with self._lock:
            return CatalogStats(
                entity_count=len(self._entities),
                location_count=len(self._locations),
                persistent=self.persist_path is not None,
                dirty=self._dirty,
                flush_pending=self._scheduler.pending if self._scheduler else False,
                last_flushed_at=self._last_flushed_at,
                last_flush_error=self._last_flush_error,
                flush_failures=self._flush_failures,
            )
