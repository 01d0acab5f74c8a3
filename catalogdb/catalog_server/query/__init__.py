"""
Query module for the catalog store.

This module handles:
- Dotted-path field resolution (kind, metadata.*, spec.*)
- Filter expressions (field=value, field!=value)
- Multi-field sorting and offset pagination
- Value facets
"""

from .evaluator import (
    FilterExpression,
    apply_filters,
    compute_facets,
    paginate,
    sort_entities,
)
from .fields import MISSING, get_field_value, stringify
from .types import (
    EntitiesQuery,
    EntitiesResponse,
    EntityFacetsResponse,
    FacetBucket,
    OrderField,
    PageInfo,
    filters_from_mapping,
)

__all__ = [
    "MISSING",
    "EntitiesQuery",
    "EntitiesResponse",
    "EntityFacetsResponse",
    "FacetBucket",
    "FilterExpression",
    "OrderField",
    "PageInfo",
    "apply_filters",
    "compute_facets",
    "filters_from_mapping",
    "get_field_value",
    "paginate",
    "sort_entities",
    "stringify",
]
