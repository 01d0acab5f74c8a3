"""
Request/response models for catalog queries and facets.

Field aliases follow the catalog REST API (orderField, totalItems,
pageInfo, nextCursor, prevCursor) so a REST layer can dump these models
straight to JSON with ``by_alias=True``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..entity import Entity
from ..errors import InvalidQueryError


class OrderField(BaseModel):
    """One sort key."""

    field: str = Field(..., min_length=1, description="Dotted field path")
    order: Literal["asc", "desc"] = Field("asc", description="Sort direction")

    @classmethod
    def parse(cls, text: str) -> OrderField:
        """Parse the ``field,order`` form used by the REST API.

        Raises:
            InvalidQueryError: If the field is empty or the order is unknown
        """
        field, _, order = text.partition(",")
        try:
            return cls(field=field.strip(), order=(order.strip().lower() or "asc"))
        except ValidationError as e:
            raise InvalidQueryError(
                f"Invalid order field '{text}'",
                errors=[err["msg"] for err in e.errors()],
            ) from e


class EntitiesQuery(BaseModel):
    """Query over the catalog."""

    model_config = ConfigDict(populate_by_name=True)

    filter: list[str] = Field(default_factory=list, description="field=value / field!=value")
    order_fields: list[OrderField] = Field(default_factory=list, alias="orderField")
    offset: int = Field(0, ge=0, description="Pagination offset")
    limit: int | None = Field(None, ge=1, description="Page size (store default when unset)")


class PageInfo(BaseModel):
    """Cursors for neighbouring pages. Cursors are plain offsets."""

    model_config = ConfigDict(populate_by_name=True)

    next_cursor: str | None = Field(None, alias="nextCursor")
    prev_cursor: str | None = Field(None, alias="prevCursor")


class EntitiesResponse(BaseModel):
    """One page of query results."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[Entity]
    total_items: int = Field(..., alias="totalItems")
    page_info: PageInfo = Field(default_factory=PageInfo, alias="pageInfo")


class FacetBucket(BaseModel):
    """Count of entities carrying one value."""

    value: str
    count: int


class EntityFacetsResponse(BaseModel):
    """Facet buckets keyed by field path."""

    facets: dict[str, list[FacetBucket]] = Field(default_factory=dict)


def filters_from_mapping(filters: Mapping[str, Any]) -> list[str]:
    """Convert ``filters[field]=value`` style parameters to filter expressions.

    Sequence values expand to one expression per element.
    """
    expressions: list[str] = []
    for field, value in filters.items():
        values = value if isinstance(value, (list, tuple)) else [value]
        expressions.extend(f"{field}={v}" for v in values)
    return expressions
