"""
Entity module for the catalog store.

This module defines:
- Entity, EntityMeta, EntityRelation, EntityLink models
- EntityEnvelope (entity + location key), the persisted unit
- Location records
- Reference helpers (kind:namespace/name)
"""

from .refs import (
    DEFAULT_NAMESPACE,
    CompoundEntityRef,
    make_entity_ref,
    parse_entity_ref,
    stringify_entity_ref,
)
from .types import Entity, EntityEnvelope, EntityLink, EntityMeta, EntityRelation, Location

__all__ = [
    "DEFAULT_NAMESPACE",
    "CompoundEntityRef",
    "Entity",
    "EntityEnvelope",
    "EntityLink",
    "EntityMeta",
    "EntityRelation",
    "Location",
    "make_entity_ref",
    "parse_entity_ref",
    "stringify_entity_ref",
]
