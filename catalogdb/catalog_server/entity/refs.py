"""
Entity reference helpers.

A reference is the canonical identity string of an entity:

    <lowercase kind>:<namespace>/<name>

e.g. ``component:default/svc-a``.
"""

from __future__ import annotations

from typing import NamedTuple

from .types import Entity

DEFAULT_NAMESPACE = "default"


class CompoundEntityRef(NamedTuple):
    """Parsed entity reference. kind is None when the ref omits it."""

    kind: str | None
    namespace: str
    name: str


def make_entity_ref(kind: str, namespace: str | None, name: str) -> str:
    """Build a reference from its parts."""
    return f"{kind.lower()}:{namespace or DEFAULT_NAMESPACE}/{name}"


def stringify_entity_ref(entity: Entity) -> str:
    """Build the reference for an entity."""
    return make_entity_ref(entity.kind, entity.metadata.namespace, entity.metadata.name)


def parse_entity_ref(ref: str) -> CompoundEntityRef:
    """Parse a reference in any of its short forms.

    Accepted forms:
        name
        namespace/name
        kind:name
        kind:namespace/name

    Args:
        ref: Reference string

    Returns:
        CompoundEntityRef with the namespace defaulted to "default"
    """
    kind: str | None = None
    rest = ref
    head, sep, tail = ref.partition(":")
    if sep and "/" not in head:
        kind, rest = head, tail

    namespace, slash, name = rest.partition("/")
    if not slash:
        return CompoundEntityRef(kind, DEFAULT_NAMESPACE, rest)
    return CompoundEntityRef(kind, namespace or DEFAULT_NAMESPACE, name)
