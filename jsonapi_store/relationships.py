"""
Relationship linkage and inverse synchronization.

Relationships are stored on the owning record as JSON:API linkage data
(``{"data": identifier | [identifier, ...] | None}``) and resolved to
records through the owner's store. Mutations go through this module so
that a declared inverse is kept in step.

Inverse updates are direct linkage writes on the other record; they never
call back into the public mutators, so propagation stops after one level
and mutual inverses cannot recurse.

Invariants:
    - A to-many linkage never holds the same (type, id) twice
    - Relationships without a declared inverse are never auto-synced
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from .errors import InputError
from .schema import RelationshipDef

if TYPE_CHECKING:
    from .record import Record

logger = logging.getLogger(__name__)


def identifier(record: Record) -> dict[str, str]:
    """Resource identifier object for a record."""
    return {"type": record.type, "id": str(record.id)}


def _key(ident: Any) -> tuple[str, str] | None:
    if not isinstance(ident, dict) or ident.get("id") is None:
        return None
    return ident.get("type"), str(ident["id"])


def identifiers(data: Any) -> list[dict[str, Any]]:
    """Linkage data as a list of identifiers (empty for None)."""
    if data is None:
        return []
    if isinstance(data, list):
        return [d for d in data if _key(d) is not None]
    return [data] if _key(data) is not None else []


def _check_target(definition: RelationshipDef, record: Record) -> None:
    if not definition.accepts(record.type):
        raise InputError(
            f"'{definition.type}.{definition.name}' accepts {list(definition.targets)}, "
            f"got '{record.type}'"
        )


def _points_at(owner: Record, ident: Any, other: Record) -> bool:
    """Whether an identifier in owner's linkage refers to other.

    Identifiers are matched by the record they resolve to, so a link
    written under a temporary id still matches after the record is saved.
    """
    resolved = owner._resolve(ident)
    if resolved is not None:
        return resolved is other
    return _key(ident) == (other.type, str(other.id))


def _append(owner: Record, name: str, other: Record) -> bool:
    """Add other to owner's to-many linkage without propagation."""
    data = identifiers(owner.linkage(name))
    if any(_points_at(owner, d, other) for d in data):
        return False
    owner._set_linkage(name, [*data, identifier(other)])
    owner._remember(other)
    return True


def _drop(owner: Record, name: str, other: Record) -> None:
    """Remove other from owner's linkage (either cardinality) without propagation."""
    data = owner.linkage(name)
    if isinstance(data, list):
        kept = [d for d in data if not _points_at(owner, d, other)]
        if len(kept) != len(data):
            owner._set_linkage(name, kept)
    elif data is not None and _points_at(owner, data, other):
        owner._set_linkage(name, None)
    owner._forget(other)


def _link_inverse(target: Record, forward: RelationshipDef, owner: Record) -> None:
    """Point target's inverse relationship at owner.

    When the inverse is a to-one already pointing at a third record, that
    record's forward linkage to target is dropped as well.
    """
    inverse = target.registry.relationship(target.type, forward.inverse or "")
    if inverse is None:
        logger.debug(
            f"Inverse '{forward.inverse}' not declared on '{target.type}', skipping sync"
        )
        return
    if inverse.is_to_many:
        _append(target, inverse.name, owner)
        return
    displaced = target._resolve(target.linkage(inverse.name))
    if displaced is not None and displaced is not owner:
        _drop(displaced, forward.name, target)
    target._set_linkage(inverse.name, identifier(owner))
    target._remember(owner)


def _unlink_inverse(target: Record, forward: RelationshipDef, owner: Record) -> None:
    if target.registry.relationship(target.type, forward.inverse or "") is None:
        return
    _drop(target, forward.inverse, owner)  # type: ignore[arg-type]


def set_to_one(owner: Record, definition: RelationshipDef, record: Record | None) -> None:
    """Assign a to-one relationship, syncing the inverse if declared.

    Raises:
        InputError: If record's type is not a declared target
    """
    if record is not None:
        _check_target(definition, record)
    current = owner._resolve(owner.linkage(definition.name))
    if current is record and (record is not None or owner.linkage(definition.name) is None):
        return

    if current is not None:
        owner._forget(current)
    if record is None:
        owner._set_linkage(definition.name, None)
    else:
        owner._set_linkage(definition.name, identifier(record))
        owner._remember(record)

    if definition.inverse:
        if current is not None:
            _unlink_inverse(current, definition, owner)
        if record is not None:
            _link_inverse(record, definition, owner)


def restore_linkage(owner: Record, linkage: dict[str, Any]) -> None:
    """Replace owner's linkage wholesale, re-syncing declared inverses.

    Used by rollback: identifiers that disappear are unlinked on the other
    side, identifiers that come back are relinked.
    """
    for name in dict.fromkeys([*owner.relationships, *linkage]):
        definition = owner.registry.relationship(owner.type, name)
        before = {_key(d): d for d in identifiers(owner.linkage(name))}
        entry = linkage.get(name)
        after_data = entry.get("data") if isinstance(entry, dict) else None
        after = {_key(d): d for d in identifiers(after_data)}

        if definition is not None and definition.inverse:
            for key in before.keys() - after.keys():
                other = owner._resolve(before[key])
                if other is not None:
                    _unlink_inverse(other, definition, owner)
            for key in after.keys() - before.keys():
                other = owner._resolve(after[key])
                if other is not None:
                    _link_inverse(other, definition, owner)

        if name in linkage:
            owner._set_linkage(name, after_data)
        else:
            owner.relationships.pop(name, None)


class RelationshipCollection:
    """Live set-like view over a to-many relationship.

    Iteration and ``len`` cover the linked records that can be resolved;
    identifiers of unknown types or unloaded records are skipped. Order is
    not meaningful.

    Example:
        >>> todo.notes.add(note)
        >>> note in todo.notes
        True
        >>> note.todo is todo
        True
    """

    def __init__(self, owner: Record, definition: RelationshipDef) -> None:
        self.owner = owner
        self.definition = definition

    @property
    def name(self) -> str:
        return self.definition.name

    def identifiers(self) -> list[dict[str, Any]]:
        return identifiers(self.owner.linkage(self.name))

    def records(self) -> list[Record]:
        resolved = (self.owner._resolve(ident) for ident in self.identifiers())
        return [record for record in resolved if record is not None]

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records())

    def __len__(self) -> int:
        return len(self.records())

    def __getitem__(self, index: int) -> Record:
        return self.records()[index]

    def __contains__(self, item: object) -> bool:
        if isinstance(item, dict):
            resolved = self.owner._resolve(item)
            if resolved is None:
                key = _key(item)
                return any(_key(ident) == key for ident in self.identifiers())
            item = resolved
        if not hasattr(item, "type"):
            return False
        return any(_points_at(self.owner, ident, item) for ident in self.identifiers())

    def __repr__(self) -> str:
        return f"<RelationshipCollection {self.owner.type}.{self.name} {self.records()!r}>"

    def add(self, record: Record) -> Record:
        """Link record; no-op if its (type, id) is already present.

        Raises:
            InputError: If record's type is not the declared target
        """
        _check_target(self.definition, record)
        if _append(self.owner, self.name, record) and self.definition.inverse:
            _link_inverse(record, self.definition, self.owner)
        return record

    def remove(self, record: Record) -> Record:
        """Unlink record and clear its inverse; no-op if absent."""
        if record not in self:
            return record
        _drop(self.owner, self.name, record)
        if self.definition.inverse:
            _unlink_inverse(record, self.definition, self.owner)
        return record

    def replace(self, records: Iterable[Record]) -> None:
        """Make the collection hold exactly ``records``."""
        wanted = list(records)
        wanted_keys = {(r.type, str(r.id)) for r in wanted}
        for current in self.records():
            if (current.type, str(current.id)) not in wanted_keys:
                self.remove(current)
        for record in wanted:
            self.add(record)
