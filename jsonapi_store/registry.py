"""
Schema registry for the JSON:API store.

This module provides the table of attribute, relationship and validator
definitions per resource type:
- Declaring attributes, relationships and validations
- Lookup of the accumulated definitions per type
- Optional binding of a Record subclass to a type

Declarations are append-only; a repeated (type, name) declaration replaces
the previous one (last writer wins). There is no removal, only reset().

Example:
    >>> registry = SchemaRegistry()
    >>> registry.add_attribute(type="todos", name="title", data_type=str, default="NEW TODO")
    >>> registry.add_relationship(type="todos", name="notes", kind="to_many",
    ...                           targets=("notes",), inverse="todo")
    >>> registry.add_validation(type="todos", name="title")
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Iterator
from difflib import get_close_matches
from typing import TYPE_CHECKING, Any, Callable

from .errors import SchemaError, UnknownTypeError
from .schema import (
    NO_DEFAULT,
    AttributeDef,
    RelationKind,
    RelationshipDef,
    Validator,
    validate_presence,
)

if TYPE_CHECKING:
    from .record import Record

logger = logging.getLogger(__name__)

# Global registry
_global_registry: SchemaRegistry | None = None
_registry_lock = threading.Lock()


class SchemaRegistry:
    """Per-type attribute and relationship definitions.

    A type exists once it has at least one attribute or relationship
    declared, or a model class bound to it.

    Example:
        >>> registry = SchemaRegistry()
        >>> registry.add_attribute(type="notes", name="description", data_type=str)
        >>> registry.structure_for("notes")["description"].data_type
        <class 'str'>
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._structure: dict[str, dict[str, AttributeDef]] = {}
        self._relations: dict[str, dict[str, RelationshipDef]] = {}
        self._models: dict[str, type[Record]] = {}
        self._lock = threading.Lock()

    def add_attribute(
        self,
        *,
        type: str,
        name: str,
        data_type: Callable[..., Any] | None = None,
        default: Any = NO_DEFAULT,
    ) -> AttributeDef:
        """Declare an attribute.

        A validator already declared for (type, name) is carried over.

        Raises:
            SchemaError: If name is 'id' or empty
        """
        with self._lock:
            bucket = self._structure.setdefault(type, {})
            previous = bucket.get(name)
            kwargs: dict[str, Any] = {"type": type, "name": name, "default": default}
            if data_type is not None:
                kwargs["data_type"] = data_type
            if previous is not None:
                kwargs["validator"] = previous.validator
            definition = AttributeDef(**kwargs)
            bucket[name] = definition
            logger.debug(f"Declared attribute {type}.{name}")
            return definition

    def add_relationship(
        self,
        *,
        type: str,
        name: str,
        kind: str | RelationKind,
        targets: str | tuple[str, ...] | list[str],
        inverse: str | None = None,
    ) -> RelationshipDef:
        """Declare a relationship.

        Args:
            type: Owning resource type
            name: Relationship name
            kind: "to_one" or "to_many"
            targets: Target type, or several for a polymorphic to-one
            inverse: Reciprocal relationship name on the target type

        Raises:
            SchemaError: If kind is unknown or no target is given
        """
        if isinstance(kind, str):
            kind = RelationKind.from_str(kind)
        if isinstance(targets, str):
            targets = (targets,)
        definition = RelationshipDef(
            type=type,
            name=name,
            kind=kind,
            targets=tuple(targets),
            inverse=inverse,
        )
        if definition.is_to_many and definition.is_polymorphic:
            raise SchemaError(
                f"to-many relationship '{name}' must have a single target type",
                type_name=type,
            )
        with self._lock:
            self._relations.setdefault(type, {})[name] = definition
            logger.debug(f"Declared {kind.value} relationship {type}.{name} -> {definition.targets}")
        return definition

    def add_validation(
        self,
        *,
        type: str,
        name: str,
        validator: Validator | None = None,
    ) -> None:
        """Attach a validator to an attribute (presence by default).

        The attribute may be declared before or after the validation.
        """
        validator = validator or validate_presence
        with self._lock:
            bucket = self._structure.setdefault(type, {})
            existing = bucket.get(name)
            if existing is None:
                existing = AttributeDef(type=type, name=name)
            bucket[name] = dataclasses.replace(existing, validator=validator)

    def register_model(self, model: type[Record]) -> None:
        """Bind a Record subclass to its declared ``type``."""
        type_name = getattr(model, "type", None)
        if not type_name:
            raise SchemaError(f"{model.__name__} does not define a resource type")
        with self._lock:
            self._models[type_name] = model

    def structure_for(self, type: str) -> dict[str, AttributeDef]:
        """Attribute definitions for a type, in declaration order."""
        return dict(self._structure.get(type, {}))

    def relations_for(self, type: str) -> dict[str, RelationshipDef]:
        """Relationship definitions for a type, in declaration order."""
        return dict(self._relations.get(type, {}))

    def relationship(self, type: str, name: str) -> RelationshipDef | None:
        """Single relationship definition, if declared."""
        return self._relations.get(type, {}).get(name)

    def model_for(self, type: str) -> type[Record]:
        """Record class for a type (the base Record when none is bound)."""
        from .record import Record

        return self._models.get(type, Record)

    def has_type(self, type: str) -> bool:
        """Whether a type has any schema entry."""
        return type in self._structure or type in self._relations or type in self._models

    def require_type(self, type: str) -> None:
        """Raise UnknownTypeError with suggestions if type is undeclared."""
        if not self.has_type(type):
            suggestions = get_close_matches(type, list(self.types()), n=3)
            raise UnknownTypeError(type, suggestions)

    def types(self) -> Iterator[str]:
        """Iterate over all declared types."""
        seen = dict.fromkeys([*self._structure, *self._relations, *self._models])
        yield from seen

    def reset(self) -> None:
        """Drop every declaration."""
        with self._lock:
            self._structure.clear()
            self._relations.clear()
            self._models.clear()


def get_registry() -> SchemaRegistry:
    """Get the process-default schema registry."""
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = SchemaRegistry()
        return _global_registry


def reset_registry() -> None:
    """Reset the process-default registry (for testing only)."""
    global _global_registry
    with _registry_lock:
        _global_registry = None
