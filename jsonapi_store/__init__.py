"""
jsonapi_store - In-memory relational data layer for JSON:API clients.

This package keeps server resources as live, observable records:
- Schema registry for attribute and relationship declarations
- Record with dirty tracking, snapshots, rollback and validation
- Relationship collections that keep declared inverses in sync
- Store identity map with temporary-id aliasing
- JSON:API codec with duplicate-free, cycle-safe ``included``
- save/destroy orchestration around a pluggable transport

Example:
    >>> from jsonapi_store import Record, Store, get_registry
    >>>
    >>> registry = get_registry()
    >>> registry.add_attribute(type="todos", name="title", data_type=str, default="NEW TODO")
    >>> registry.add_relationship(type="todos", name="notes", kind="to_many", targets=("notes",), inverse="todo")
    >>> registry.add_attribute(type="notes", name="description", data_type=str)
    >>> registry.add_relationship(type="notes", name="todo", kind="to_one", targets=("todos",), inverse="notes")
    >>>
    >>> class Todo(Record):
    ...     type = "todos"
    >>>
    >>> async with Store([Todo]) as store:
    ...     todo = store.add("todos", {"title": "Buy Milk"})
    ...     await todo.save()

Invariants:
    - One record instance per (type, id) within a Store
    - New records carry a temporary id until the server assigns one
    - Declared inverses are updated together with the forward side

Version: 1.0.0
"""

__version__ = "1.0.0"

from .codec import build_document, server_response, to_full_jsonapi, to_jsonapi
from .config import StoreSettings
from .errors import (
    InputError,
    SchemaError,
    ServerError,
    StoreError,
    TransportError,
    UnknownTypeError,
    ValidationError,
)
from .observable import Change, Observable
from .persistence import RequestProxy
from .record import Record, Snapshot, is_temp_id, new_temp_id
from .registry import SchemaRegistry, get_registry, reset_registry
from .relationships import RelationshipCollection
from .schema import (
    AttributeDef,
    RelationKind,
    RelationshipDef,
    ValidationResult,
    validate_presence,
)
from .store import Store
from .transport import HttpxTransport, Transport, TransportResponse

__all__ = [
    # Version
    "__version__",
    # Schema
    "AttributeDef",
    "RelationshipDef",
    "RelationKind",
    "ValidationResult",
    "validate_presence",
    # Registry
    "SchemaRegistry",
    "get_registry",
    "reset_registry",
    # Records
    "Record",
    "Snapshot",
    "RelationshipCollection",
    "Change",
    "Observable",
    "new_temp_id",
    "is_temp_id",
    # Store
    "Store",
    "StoreSettings",
    "RequestProxy",
    # Codec
    "to_jsonapi",
    "to_full_jsonapi",
    "build_document",
    "server_response",
    # Transport
    "Transport",
    "TransportResponse",
    "HttpxTransport",
    # Errors
    "StoreError",
    "ValidationError",
    "ServerError",
    "TransportError",
    "InputError",
    "UnknownTypeError",
    "SchemaError",
]
