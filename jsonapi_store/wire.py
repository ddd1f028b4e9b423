"""
JSON:API wire format models.

Incoming documents are parsed into these pydantic models before they touch
the store, so malformed payloads fail in one place with a clear error.
Numeric ids are accepted and normalised to strings.

Example:
    >>> doc = Document.model_validate({"data": {"type": "todos", "id": 1, "attributes": {}}})
    >>> doc.data.id
    '1'
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _stringify(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class ResourceIdentifier(BaseModel):
    """``{"type", "id"}`` reference to a resource."""

    model_config = ConfigDict(extra="allow")

    type: str
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        return _stringify(value)


class RelationshipObject(BaseModel):
    """One entry of a resource's ``relationships`` member.

    ``data`` is only meaningful when it was actually sent; a relationship
    carrying just ``meta`` (or links) is a placeholder and must not clear
    existing linkage.
    """

    model_config = ConfigDict(extra="allow")

    data: Union[ResourceIdentifier, list[ResourceIdentifier], None] = None
    meta: dict[str, Any] | None = None

    @property
    def has_data(self) -> bool:
        return "data" in self.model_fields_set

    @property
    def is_placeholder(self) -> bool:
        return not self.has_data

    def linkage(self) -> dict[str, Any]:
        """Plain ``{"data": ...}`` for storage on a record."""
        if isinstance(self.data, list):
            return {"data": [{"type": d.type, "id": d.id} for d in self.data]}
        if self.data is None:
            return {"data": None}
        return {"data": {"type": self.data.type, "id": self.data.id}}


class ResourceObject(BaseModel):
    """A full resource: type, optional id, attributes, relationships, meta."""

    model_config = ConfigDict(extra="allow")

    type: str
    id: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    relationships: dict[str, RelationshipObject] = Field(default_factory=dict)
    meta: dict[str, Any] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        return _stringify(value)


class Document(BaseModel):
    """Top-level JSON:API document."""

    model_config = ConfigDict(extra="allow")

    data: Union[ResourceObject, list[ResourceObject], None] = None
    included: list[ResourceObject] = Field(default_factory=list)
    meta: dict[str, Any] | None = None

    def resources(self) -> list[ResourceObject]:
        """Primary data as a list."""
        if self.data is None:
            return []
        if isinstance(self.data, list):
            return list(self.data)
        return [self.data]
