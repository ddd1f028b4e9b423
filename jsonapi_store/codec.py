"""
JSON:API encoding and decoding of records.

Encoding:
- to_jsonapi: one record as ``{"data": resource}``, attributes and
  relationships optionally filtered
- to_full_jsonapi: one record with every relationship
- build_document / server_response: full document with a duplicate-free
  ``included`` array resolved recursively through the store

Decoding:
- apply_resource: write a parsed resource object onto an existing record

Invariants:
    - A temporary id is never sent; new records are encoded without ``id``
    - ``included`` never holds the same (type, id) twice and never holds a
      primary resource
    - Included resolution terminates on cyclic graphs

Example:
    >>> server_response(todo)
    '{"data": {"type": "todos", "id": "1", ...}, "included": [...]}'
"""

from __future__ import annotations

import copy
import json
import logging
from typing import TYPE_CHECKING, Any, Sequence

from pydantic_core import to_jsonable_python

from .errors import InputError
from .relationships import identifiers
from .utils import stringify_ids
from .wire import ResourceObject

if TYPE_CHECKING:
    from .record import Record

logger = logging.getLogger(__name__)

Key = tuple[str, str]


def _key(record: Record) -> Key:
    return record.type, str(record.id)


def to_jsonapi(
    record: Record,
    attributes: Sequence[str] | None = None,
    relationships: Sequence[str] | None = None,
) -> dict[str, Any]:
    """Encode a record as a single-resource document.

    Args:
        record: Record to encode
        attributes: Attribute names to include (all declared when None)
        relationships: Relationship names to include (none when None)

    Returns:
        ``{"data": {"type", "id"?, "attributes", "relationships"?, "meta"?}}``
    """
    definitions = record.attribute_definitions
    names = list(definitions)
    if attributes is not None:
        names = [name for name in names if name in attributes]

    encoded_attributes: dict[str, Any] = {}
    for name in names:
        value = record._values.get(name)
        if value:
            encoded_attributes[name] = definitions[name].coerce(value)
        else:
            encoded_attributes[name] = value

    data: dict[str, Any] = {"type": record.type}
    if not record.is_new:
        data["id"] = str(record.id)
    data["attributes"] = encoded_attributes

    if relationships is not None:
        declared = record.relationship_definitions
        encoded_relationships: dict[str, Any] = {}
        for name in dict.fromkeys([*record.relationships, *declared]):
            if name not in relationships:
                continue
            entry = record.relationships.get(name)
            if entry is None:
                entry = {"data": [] if declared[name].is_to_many else None}
            encoded_relationships[name] = stringify_ids(copy.deepcopy(entry))
        data["relationships"] = encoded_relationships

    if record.meta:
        data["meta"] = record.meta

    return {"data": data}


def to_full_jsonapi(
    record: Record,
    attributes: Sequence[str] | None = None,
    relationships: Sequence[str] | None = None,
) -> dict[str, Any]:
    """Encode a record with all of its relationships unless a subset is named."""
    if relationships is None:
        names = [*record.relationships, *record.relationship_definitions]
        relationships = list(dict.fromkeys(names))
    return to_jsonapi(record, attributes=attributes, relationships=relationships)


def add_included(
    record: Record,
    encoded: dict[str, Any],
    included: list[dict[str, Any]],
    seen: set[Key],
) -> None:
    """Append every resource reachable from ``encoded`` to ``included``.

    Walks relationships in declaration order, depth first. ``seen`` holds
    the keys of everything already encoded (primary resources included)
    and is extended as resources are appended, so each (type, id) is
    encoded once and cycles terminate. Identifiers whose record is not
    loaded, or whose type is unknown, are skipped.
    """
    for entry in encoded.get("relationships", {}).values():
        data = entry.get("data") if isinstance(entry, dict) else None
        for ident in identifiers(data):
            key = (ident["type"], str(ident["id"]))
            if key in seen:
                continue
            related = record._resolve(ident)
            if related is None:
                logger.debug(f"Skipping unresolved relationship target {key[0]}:{key[1]}")
                continue
            canonical = _key(related)
            if canonical in seen:
                seen.add(key)
                continue
            seen.update({key, canonical})
            related_encoded = to_full_jsonapi(related)["data"]
            included.append(related_encoded)
            add_included(related, related_encoded, included, seen)


def build_document(record_or_records: Record | Sequence[Record] | None) -> dict[str, Any]:
    """Full document for one record or a list of records.

    Raises:
        InputError: If given None
    """
    if record_or_records is None:
        raise InputError("Cannot encode a null reference")

    if isinstance(record_or_records, (list, tuple)):
        records = list(record_or_records)
        if not records:
            return {"data": []}
        encoded = [to_full_jsonapi(record)["data"] for record in records]
        included: list[dict[str, Any]] = []
        seen = {_key(record) for record in records}
        for record, data in zip(records, encoded):
            add_included(record, data, included, seen)
        return {"data": encoded, "included": included}

    record = record_or_records
    data = to_full_jsonapi(record)["data"]
    included = []
    add_included(record, data, included, {_key(record)})
    return {"data": data, "included": included}


def dump_document(document: dict[str, Any]) -> str:
    """Serialize a document; dates become ISO 8601 strings."""
    return json.dumps(document, default=to_jsonable_python)


def server_response(record_or_records: Record | Sequence[Record] | None) -> str:
    """JSON text of build_document(...), as a server would send it."""
    return dump_document(build_document(record_or_records))


def apply_resource(record: Record, resource: ResourceObject) -> None:
    """Write a parsed resource's attributes, linkage and meta onto record.

    Server values do not make the record dirty. Relationship entries
    without ``data`` (meta- or links-only placeholders) leave existing
    linkage untouched. The caller owns re-keying and snapshotting.
    """
    if resource.id is not None:
        record.id = resource.id
    for name, value in resource.attributes.items():
        if name in ("id", "type"):
            continue
        record._write(name, value, mark_dirty=False)
    for name, relationship in resource.relationships.items():
        if relationship.is_placeholder:
            continue
        record._set_linkage(name, relationship.linkage()["data"], mark_dirty=False)
    if resource.meta is not None:
        record.meta = resource.meta
