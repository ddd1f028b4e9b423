"""
Schema types for the JSON:API store.

This module provides the per-type definitions the registry accumulates:
- AttributeDef: a coerced, defaulted, optionally validated attribute
- RelationshipDef: a to-one or to-many link to other resource types
- ValidationResult / validate_presence: attribute validators

Invariants:
    - ``id`` is never an attribute; it is implicit on every record
    - A relationship names at least one target type
    - Defaults are handed out as fresh copies, never shared between records

Example:
    >>> title = AttributeDef(type="todos", name="title", data_type=str, default="NEW TODO")
    >>> notes = RelationshipDef(type="todos", name="notes", kind=RelationKind.TO_MANY,
    ...                         targets=("notes",), inverse="todo")
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable

from pydantic import TypeAdapter

from .errors import SchemaError

# Sentinel for "no default declared"
NO_DEFAULT: Any = object()

_TEMPORAL_ADAPTERS: dict[type, TypeAdapter] = {
    datetime: TypeAdapter(datetime),
    date: TypeAdapter(date),
}


class RelationKind(Enum):
    """Relationship cardinality."""

    TO_ONE = "to_one"
    TO_MANY = "to_many"

    @classmethod
    def from_str(cls, value: str) -> RelationKind:
        """Convert string to RelationKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise SchemaError(f"Invalid relationship kind: {value}")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single attribute validator."""

    is_valid: bool
    errors: list[dict[str, str]] = field(default_factory=list)


Validator = Callable[[Any, Any], ValidationResult]


def is_present(value: Any) -> bool:
    """True unless value is None or the empty string."""
    return value is not None and value != ""


def validate_presence(value: Any, record: Any = None) -> ValidationResult:
    """Default validator: fails on None or ''."""
    return ValidationResult(
        is_valid=is_present(value),
        errors=[{"key": "blank", "message": "can't be blank"}],
    )


def coerce_value(data_type: Callable[..., Any], value: Any) -> Any:
    """Coerce a value through an attribute's data type.

    Containers are deep-copied to plain data; dates go through pydantic so
    ISO strings and timestamps are accepted. ``None`` is never coerced.
    """
    if value is None:
        return None
    if data_type in (list, dict):
        return copy.deepcopy(value)
    adapter = _TEMPORAL_ADAPTERS.get(data_type)  # type: ignore[arg-type]
    if adapter is not None:
        return adapter.validate_python(value)
    return data_type(value)


def _identity(value: Any) -> Any:
    return value


@dataclass(frozen=True)
class AttributeDef:
    """Attribute definition for a resource type.

    Attributes:
        type: Resource type that owns the attribute
        name: Attribute name
        data_type: Coercion callable (primitive type, datetime, or custom)
        default: Declared default, or NO_DEFAULT
        validator: Optional validator run by Record.validate()
    """

    type: str
    name: str
    data_type: Callable[..., Any] = _identity
    default: Any = NO_DEFAULT
    validator: Validator | None = None

    def __post_init__(self) -> None:
        """Validate attribute definition."""
        if not self.type:
            raise SchemaError("Attribute type cannot be empty")
        if not self.name:
            raise SchemaError("Attribute name cannot be empty", type_name=self.type)
        if self.name == "id":
            raise SchemaError("'id' is implicit and cannot be declared as an attribute", type_name=self.type)

    def default_value(self) -> Any:
        """A fresh default for a new record."""
        if self.default is not NO_DEFAULT:
            return coerce_value(self.data_type, copy.deepcopy(self.default))
        if self.data_type is str:
            return ""
        if self.data_type is list:
            return []
        if self.data_type is dict:
            return {}
        return None

    def coerce(self, value: Any) -> Any:
        """Coerce a value for encoding."""
        return coerce_value(self.data_type, value)


@dataclass(frozen=True)
class RelationshipDef:
    """Relationship definition for a resource type.

    Attributes:
        type: Resource type that owns the relationship
        name: Relationship name
        kind: TO_ONE or TO_MANY
        targets: Allowed target types; more than one makes a to-one polymorphic
        inverse: Reciprocal relationship name on the target type, if any
    """

    type: str
    name: str
    kind: RelationKind
    targets: tuple[str, ...]
    inverse: str | None = None

    def __post_init__(self) -> None:
        """Validate relationship definition."""
        if not self.type:
            raise SchemaError("Relationship type cannot be empty")
        if not self.name:
            raise SchemaError("Relationship name cannot be empty", type_name=self.type)
        if self.name == "id":
            raise SchemaError("'id' cannot be declared as a relationship", type_name=self.type)
        if not self.targets:
            raise SchemaError(
                f"Relationship '{self.name}' must name at least one target type",
                type_name=self.type,
            )

    @property
    def is_to_many(self) -> bool:
        return self.kind is RelationKind.TO_MANY

    @property
    def is_polymorphic(self) -> bool:
        return len(self.targets) > 1

    def accepts(self, type_name: str) -> bool:
        """Whether a record of type_name may be linked."""
        return type_name in self.targets
