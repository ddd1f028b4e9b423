"""
Record: one in-memory resource instance.

A record carries its type, id, declared attribute values, relationship
linkage and lifecycle flags. Attribute and relationship names are read and
written with plain attribute syntax; every write marks the record dirty
and is published to its observers.

Lifecycle:
    NEW --save--> PERSISTED <--mutation/save/rollback--> DIRTY
    any --request--> IN_FLIGHT --> PERSISTED | ERROR
    PERSISTED --destroy--> DELETED (evicted from the store)

``is_new`` is derived from the id (temporary ids match TEMP_ID_PATTERN);
``is_dirty`` and ``is_in_flight`` are independent booleans.

Example:
    >>> todo = store.add("todos", {"title": "Buy Milk"})
    >>> todo.is_new, todo.is_dirty
    (True, True)
    >>> todo.title = "Buy Cheese"
    >>> todo.dirty_attributes
    ['title']
"""

from __future__ import annotations

import copy
import logging
import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, ClassVar

from . import relationships as rel
from .observable import Change, Observable
from .registry import SchemaRegistry, get_registry
from .schema import AttributeDef, RelationshipDef
from .utils import diff_paths

if TYPE_CHECKING:
    from .persistence import RequestProxy
    from .store import Store

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "tmp-"
TEMP_ID_PATTERN = re.compile(
    r"^tmp-[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)

# Instance attributes that are never schema values
_RESERVED = frozenset(
    {"id", "store", "errors", "meta", "is_in_flight", "previous_snapshot"}
)

_MISSING = object()


def new_temp_id() -> str:
    """A 40 character temporary id for an unsaved record."""
    return f"{TEMP_ID_PREFIX}{uuid.uuid4()}"


def is_temp_id(value: Any) -> bool:
    return value is not None and TEMP_ID_PATTERN.match(str(value)) is not None


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time copy of a record.

    Attributes:
        attributes: Non-empty attribute values (the shape of Record.attributes)
        relationships: Plain linkage data per relationship name
        values: Every declared attribute value, empty ones included
    """

    attributes: dict[str, Any] = field(default_factory=dict)
    relationships: dict[str, Any] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


class Record:
    """A single resource instance.

    Subclasses bind a resource type::

        class Todo(Record):
            type = "todos"

    The base class can also be used directly with ``Record(type="todos")``
    for types that only exist in the registry.
    """

    type: ClassVar[str] = ""
    endpoint: ClassVar[str | None] = None

    def __init__(
        self,
        attributes: dict[str, Any] | None = None,
        *,
        store: Store | None = None,
        registry: SchemaRegistry | None = None,
        type: str | None = None,
    ) -> None:
        """Seed defaults, assign an id, take the first snapshot.

        Args:
            attributes: Initial values. ``id``, ``meta`` and ``relationships``
                (raw linkage) are recognised; relationship names accept
                records; other undeclared keys are kept but never encoded.
            store: Owning store (relationships resolve through it)
            registry: Schema registry; defaults to the store's, then the
                process default
            type: Resource type, for the base Record class only

        Raises:
            UnknownTypeError: If the type has no schema entry
        """
        if type is not None:
            object.__setattr__(self, "type", type)
        object.__setattr__(self, "_registry", registry or (store.registry if store else get_registry()))
        self._registry.require_type(self.type)

        object.__setattr__(self, "_changes", Observable())
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_relationships", {})
        object.__setattr__(self, "_linked_records", {})
        object.__setattr__(self, "_is_dirty", False)

        initial = dict(attributes or {})
        record_id = initial.pop("id", None)
        linkage = initial.pop("relationships", None) or {}

        self.store = store
        self.id = str(record_id) if record_id is not None else new_temp_id()
        self.meta = initial.pop("meta", None)
        self.errors: dict[str, Any] = {}
        self.is_in_flight = False
        self.previous_snapshot = Snapshot()

        self._values.update(self.default_attributes)
        for name, definition in self.relationship_definitions.items():
            if definition.is_to_many:
                self._relationships[name] = {"data": []}
        for name, value in linkage.items():
            self._relationships[name] = copy.deepcopy(value)

        related = {k: initial.pop(k) for k in list(initial) if k in self.relationship_definitions}
        self._values.update(initial)
        for name, value in related.items():
            setattr(self, name, value)

        self.set_previous_snapshot()
        self._is_dirty = False

    # -- Attribute access --

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        values = self.__dict__.get("_values", {})
        if name in values:
            return values[name]
        definition = self._relationship_definition(name)
        if definition is not None:
            if definition.is_to_many:
                return rel.RelationshipCollection(self, definition)
            return self._resolve(self.linkage(name))
        raise AttributeError(f"'{self.type}' record has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or name in _RESERVED or hasattr(type(self), name):
            object.__setattr__(self, name, value)
            return
        definition = self._relationship_definition(name)
        if definition is not None:
            if definition.is_to_many:
                rel.RelationshipCollection(self, definition).replace(value or [])
            else:
                rel.set_to_one(self, definition, value)
            return
        self._write(name, value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.type}:{self.id}>"

    # -- Schema lookups --

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    @property
    def attribute_definitions(self) -> dict[str, AttributeDef]:
        return self._registry.structure_for(self.type)

    @property
    def relationship_definitions(self) -> dict[str, RelationshipDef]:
        return self._registry.relations_for(self.type)

    @property
    def attribute_names(self) -> list[str]:
        return list(self.attribute_definitions)

    @property
    def default_attributes(self) -> dict[str, Any]:
        """Fresh default value for every declared attribute."""
        return {
            name: definition.default_value()
            for name, definition in self.attribute_definitions.items()
        }

    def _relationship_definition(self, name: str) -> RelationshipDef | None:
        registry = self.__dict__.get("_registry")
        if registry is None:
            return None
        return registry.relationship(self.type, name)

    # -- Lifecycle flags --

    @property
    def is_new(self) -> bool:
        """True while the id is still a temporary id."""
        return is_temp_id(self.id)

    @property
    def is_dirty(self) -> bool:
        """True if modified since the last snapshot, or never persisted."""
        return self._is_dirty or self.is_new

    @is_dirty.setter
    def is_dirty(self, value: bool) -> None:
        self._is_dirty = value

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def error_for_key(self, key: str) -> Any:
        return self.errors.get(key)

    # -- Values and snapshots --

    @property
    def attributes(self) -> dict[str, Any]:
        """Current declared attribute values, empty ones omitted.

        Falsy values ('', 0, [], None, False) are left out, so defaults of
        that kind do not show up here or in snapshot diffs.
        """
        result = {}
        for name in self.attribute_names:
            value = self._values.get(name)
            if value:
                result[name] = copy.deepcopy(value)
        return result

    @property
    def relationships(self) -> dict[str, Any]:
        """Raw linkage data keyed by relationship name."""
        return self._relationships

    @relationships.setter
    def relationships(self, value: dict[str, Any]) -> None:
        old = copy.deepcopy(self._relationships)
        self._relationships = copy.deepcopy(dict(value or {}))
        self._is_dirty = True
        self._changes.publish(Change(self, "relationships", old, self._relationships))

    @property
    def snapshot(self) -> Snapshot:
        """Current state as a detached Snapshot."""
        return Snapshot(
            attributes=self.attributes,
            relationships=copy.deepcopy(self._relationships),
            values={name: copy.deepcopy(self._values.get(name)) for name in self.attribute_names},
        )

    def set_previous_snapshot(self) -> None:
        """Make the current state the rollback and diff baseline."""
        self.previous_snapshot = self.snapshot

    @property
    def dirty_attributes(self) -> list[str]:
        """Attribute paths changed since the previous snapshot.

        Nested values are walked, so a change to ``address["city"]`` is
        reported as ``address.city``.
        """
        return diff_paths(self.previous_snapshot.attributes, self.attributes)

    def rollback(self) -> None:
        """Restore attributes and relationships to the previous snapshot.

        Inverse sides of changed relationships are restored as well. The
        restored state becomes the new baseline and the record is clean.
        """
        previous = self.previous_snapshot
        with self.transaction():
            for name in self.attribute_names:
                self._write(name, copy.deepcopy(previous.values.get(name)))
            rel.restore_linkage(self, previous.relationships)
            self.errors = {}
        self.set_previous_snapshot()
        self._is_dirty = False
        logger.debug(f"Rolled back {self.type}:{self.id}")

    def update_attributes(self, attributes: dict[str, Any]) -> None:
        """Assign several values in one transaction."""
        with self.transaction():
            for name, value in attributes.items():
                setattr(self, name, value)

    # -- Observers --

    def subscribe(self, observer: Callable[[Change], None]) -> Callable[[], None]:
        """Observe writes; returns an unsubscribe callable."""
        return self._changes.subscribe(observer)

    def unsubscribe(self, observer: Callable[[Change], None]) -> None:
        self._changes.unsubscribe(observer)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Batch writes so observers only see the final state."""
        with self._changes.batch():
            yield

    # -- Validation --

    def validate(self) -> bool:
        """Run every attribute validator, collecting failures in ``errors``."""
        self.errors = {}
        valid = True
        for name, definition in self.attribute_definitions.items():
            if definition.validator is None:
                continue
            result = definition.validator(self._values.get(name), self)
            if not result.is_valid:
                self.errors[name] = list(result.errors)
                valid = False
        return valid

    # -- Encoding and persistence --

    def jsonapi(
        self,
        attributes: list[str] | None = None,
        relationships: list[str] | None = None,
    ) -> dict[str, Any]:
        """Encode as a ``{"data": resource}`` JSON:API document."""
        from .codec import to_jsonapi

        return to_jsonapi(self, attributes=attributes, relationships=relationships)

    def save(
        self,
        *,
        relationships: list[str] | None = None,
        attributes: list[str] | None = None,
        query_params: dict[str, Any] | None = None,
        skip_validations: bool = False,
    ) -> RequestProxy:
        """Create or update on the server; see persistence.save."""
        from .persistence import save

        return save(
            self,
            relationships=relationships,
            attributes=attributes,
            query_params=query_params,
            skip_validations=skip_validations,
        )

    async def destroy(
        self,
        *,
        params: dict[str, Any] | None = None,
        skip_remove: bool = False,
    ) -> Record | Snapshot:
        """Delete on the server and evict; see persistence.destroy."""
        from .persistence import destroy

        return await destroy(self, params=params, skip_remove=skip_remove)

    # -- Internal writes --

    def _write(self, name: str, value: Any, *, mark_dirty: bool = True) -> None:
        old = self._values.get(name, _MISSING)
        self._values[name] = value
        if mark_dirty:
            self._is_dirty = True
        self._changes.publish(Change(self, name, None if old is _MISSING else old, value))

    def linkage(self, name: str) -> Any:
        """Raw ``data`` member of a relationship (None when unset)."""
        entry = self._relationships.get(name)
        if not isinstance(entry, dict):
            return None
        return entry.get("data")

    def _set_linkage(self, name: str, data: Any, *, mark_dirty: bool = True) -> None:
        old = copy.deepcopy(self.linkage(name))
        self._relationships[name] = {"data": data}
        if mark_dirty:
            self._is_dirty = True
        self._changes.publish(Change(self, name, old, data))

    def _remember(self, record: Record) -> None:
        self._linked_records[(record.type, str(record.id))] = record

    def _forget(self, record: Record) -> None:
        for key in [k for k, v in self._linked_records.items() if v is record]:
            del self._linked_records[key]

    def _resolve(self, identifier: Any) -> Record | None:
        """Record for a linkage identifier, via the store first."""
        if not isinstance(identifier, dict) or identifier.get("id") is None:
            return None
        key = (identifier.get("type"), str(identifier["id"]))
        if self.store is not None:
            found = self.store.get_one(*key)
            if found is not None:
                return found
        return self._linked_records.get(key)


