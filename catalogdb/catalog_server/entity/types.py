"""
Entity and location types for the catalog store.

These models mirror the catalog descriptor format:

    apiVersion: backstage.io/v1alpha1
    kind: Component
    metadata:
      name: svc-a
      tags: [python]
    spec:
      owner: team-x

Only identity fields are validated (kind and metadata.name). Everything
else, including unknown top-level and metadata keys, is carried through
untouched so the snapshot round-trips field for field.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EntityLink(BaseModel):
    """A link attached to entity metadata."""

    model_config = ConfigDict(extra="allow")

    url: str
    title: str | None = None
    icon: str | None = None
    type: str | None = None


class EntityRelation(BaseModel):
    """A typed relation to another entity."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    target_ref: str = Field(alias="targetRef")


class EntityMeta(BaseModel):
    """Entity metadata.

    Attributes:
        name: Entity name, unique within kind + namespace
        namespace: Namespace (the store fills in "default")
        uid: Store-assigned unique identifier
        etag: Store-assigned change token
        title: Display title
        description: Free-form description
        tags: Ordered tags
        labels: String labels
        annotations: String annotations
        links: External links
    """

    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1)
    namespace: str | None = None
    uid: str | None = None
    etag: str | None = None
    title: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None
    links: list[EntityLink] | None = None


class Entity(BaseModel):
    """A catalog entity (kind + metadata + spec)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str = Field(min_length=1)
    metadata: EntityMeta
    spec: dict[str, Any] | None = None
    relations: list[EntityRelation] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the descriptor (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_snapshot(self) -> dict[str, Any]:
        """Serialize every explicitly set field, nulls included.

        Used for persistence so a reload reproduces the entity exactly.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class EntityEnvelope(BaseModel):
    """An entity paired with the location key that produced it.

    This is the unit written to the snapshot file.
    """

    model_config = ConfigDict(populate_by_name=True)

    entity: Entity
    location_key: str | None = Field(default=None, alias="locationKey")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"entity": self.entity.to_snapshot()}
        if self.location_key is not None:
            data["locationKey"] = self.location_key
        return data


class Location(BaseModel):
    """A registered source of entities.

    Attributes:
        id: Store-assigned identifier
        type: Ingestion mechanism (e.g. "file", "url")
        target: Where the location points
    """

    id: str
    type: str
    target: str

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
