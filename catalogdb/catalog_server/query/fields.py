"""
Dotted-path field resolution over entities.

The first path segment selects a root:
    kind           -> the entity kind, lowercased
    metadata.<p>   -> nested lookup inside metadata
    spec.<p>       -> nested lookup inside spec

Anything else, a missing segment, or a non-mapping intermediate value
resolves to MISSING.
"""

from __future__ import annotations

import json
import unicodedata
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from ..entity import Entity


class _Missing:
    """Sentinel for an unresolved field."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def _lookup(current: Any, part: str) -> Any:
    if isinstance(current, BaseModel):
        if part in type(current).model_fields:
            return getattr(current, part)
        return (current.model_extra or {}).get(part, MISSING)
    if isinstance(current, Mapping):
        return current.get(part, MISSING)
    return MISSING


def get_nested_value(obj: Any, path: str) -> Any:
    """Walk a dotted path through nested mappings."""
    current = obj
    for part in path.split("."):
        if current is None or current is MISSING:
            return MISSING
        current = _lookup(current, part)
    return current


def get_field_value(entity: Entity, field: str) -> Any:
    """Resolve a dotted field path against an entity.

    Args:
        entity: Entity to inspect
        field: Dotted path, e.g. "metadata.tags" or "spec.owner"

    Returns:
        The resolved value, or MISSING
    """
    root, _, rest = field.partition(".")
    if root == "kind":
        return entity.kind.lower()
    if root == "metadata" and rest:
        return get_nested_value(entity.metadata, rest)
    if root == "spec" and rest:
        return get_nested_value(entity.spec or {}, rest)
    return MISSING


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def stringify(value: Any) -> str:
    """String form of a resolved value.

    null and MISSING become the empty string; booleans are lowercase;
    integral floats drop their fraction; containers render as compact JSON.
    """
    if value is None or value is MISSING:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        return json.dumps(value, separators=(",", ":"), sort_keys=True, default=str)
    except (TypeError, ValueError):
        return str(value)


def collation_key(text: str) -> tuple[str, str, str]:
    """Sort key approximating locale-aware string ordering.

    Compares accent- and case-insensitively first, then by accents,
    then puts lowercase before uppercase.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), decomposed.casefold(), text.swapcase()
