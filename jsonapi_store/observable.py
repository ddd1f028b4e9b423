"""
Observer list with transactional batching.

Records publish a Change for every attribute or relationship write. Inside
a batch, changes are queued and delivered only when the outermost batch
exits, so observers never see a half-applied rollback or server update.

Example:
    >>> changes = Observable()
    >>> unsubscribe = changes.subscribe(print)
    >>> with changes.batch():
    ...     changes.publish("a")
    ...     changes.publish("b")
    a
    b
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class Change:
    """A single write to a record.

    Attributes:
        record: The record that changed
        name: Attribute or relationship name
        old: Value before the write
        new: Value after the write
    """

    record: Any
    name: str
    old: Any
    new: Any


Observer = Callable[[Any], None]


class Observable:
    """Subscribe/unsubscribe/publish with nested batch support."""

    def __init__(self) -> None:
        self._observers: list[Observer] = []
        self._depth = 0
        self._pending: list[Any] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            self.unsubscribe(observer)

        return unsubscribe

    def unsubscribe(self, observer: Observer) -> None:
        """Remove an observer; no-op if it is not subscribed."""
        try:
            self._observers.remove(observer)
        except ValueError:
            pass

    @property
    def in_batch(self) -> bool:
        return self._depth > 0

    def publish(self, event: Any) -> None:
        """Deliver event now, or queue it until the batch closes."""
        if self._depth:
            self._pending.append(event)
            return
        self._deliver(event)

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Defer delivery until the outermost batch exits.

        Queued events are delivered even if the block raises, so observers
        still see the writes that were applied.
        """
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0:
                pending, self._pending = self._pending, []
                for event in pending:
                    self._deliver(event)

    def _deliver(self, event: Any) -> None:
        for observer in list(self._observers):
            observer(event)
