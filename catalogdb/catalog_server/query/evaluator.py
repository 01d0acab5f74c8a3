"""
Query evaluation over an in-memory entity list.

Pipeline:
    entities -> filters (AND, in order) -> sort -> total -> slice

Invariants:
    - For any field/value, ``f=v`` and ``f!=v`` partition the input
    - Sorting is stable; no order fields keeps index order
    - Out-of-range offsets give an empty page, never an error
    - Facets skip null and unresolved values

How to change safely:
    - New operators must define their negation so the partition holds
    - Keep cursors as plain string offsets; clients compute them directly
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..entity import Entity
from .fields import MISSING, collation_key, get_field_value, is_sequence, stringify
from .types import EntitiesResponse, EntityFacetsResponse, FacetBucket, OrderField, PageInfo

logger = logging.getLogger(__name__)

FILTER_PATTERN = re.compile(r"^([^=!]+)(=|!=)(.*)$", re.DOTALL)


@dataclass(frozen=True)
class FilterExpression:
    """A parsed ``field=value`` or ``field!=value`` expression.

    Attributes:
        field: Dotted field path
        operator: "=" or "!="
        value: Value compared against the field's string form
    """

    field: str
    operator: str
    value: str

    @classmethod
    def parse(cls, text: str) -> FilterExpression | None:
        """Parse an expression, returning None when it is malformed."""
        match = FILTER_PATTERN.match(text)
        if not match:
            return None
        field, operator, value = match.groups()
        return cls(field=field, operator=operator, value=value)

    def _equals(self, entity: Entity) -> bool:
        resolved = get_field_value(entity, self.field)
        if resolved is None or resolved is MISSING:
            return False
        if is_sequence(resolved):
            return any(stringify(item) == self.value for item in resolved)
        return stringify(resolved) == self.value

    def matches(self, entity: Entity) -> bool:
        equal = self._equals(entity)
        return equal if self.operator == "=" else not equal


def apply_filters(entities: Iterable[Entity], filters: Iterable[str]) -> list[Entity]:
    """Narrow entities by each filter expression in turn.

    Malformed expressions are logged and skipped.
    """
    items = list(entities)
    for text in filters:
        expression = FilterExpression.parse(text)
        if expression is None:
            logger.warning("Ignoring malformed filter expression", extra={"filter": text})
            continue
        items = [entity for entity in items if expression.matches(entity)]
    return items


def sort_entities(entities: Iterable[Entity], order_fields: Sequence[OrderField]) -> list[Entity]:
    """Sort by each order field; earlier fields take precedence.

    Sorting runs from the last field to the first. Each pass is stable,
    so ties on an earlier field keep the order set by later fields.
    """
    items = list(entities)
    for order_field in reversed(order_fields):
        items.sort(
            key=lambda entity, f=order_field.field: collation_key(
                stringify(get_field_value(entity, f))
            ),
            reverse=order_field.order == "desc",
        )
    return items


def paginate(items: Sequence[Entity], offset: int, limit: int) -> EntitiesResponse:
    """Slice a filtered, sorted result set into one page."""
    total_items = len(items)
    next_cursor = str(offset + limit) if offset + limit < total_items else None
    prev_cursor = str(max(0, offset - limit)) if offset > 0 else None
    return EntitiesResponse(
        items=list(items[offset : offset + limit]),
        total_items=total_items,
        page_info=PageInfo(next_cursor=next_cursor, prev_cursor=prev_cursor),
    )


def compute_facets(entities: Iterable[Entity], fields: Iterable[str]) -> EntityFacetsResponse:
    """Count value frequencies per field.

    Sequence values contribute one count per element. Buckets are ordered
    by descending count, then by value.
    """
    entities = list(entities)
    facets: dict[str, list[FacetBucket]] = {}

    for field in fields:
        counts: Counter[str] = Counter()
        for entity in entities:
            resolved = get_field_value(entity, field)
            values = resolved if is_sequence(resolved) else [resolved]
            for value in values:
                if value is None or value is MISSING:
                    continue
                counts[stringify(value)] += 1

        facets[field] = [
            FacetBucket(value=value, count=count)
            for value, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        ]

    return EntityFacetsResponse(facets=facets)
