"""
Persistence orchestration: save and destroy.

Both operations drive a record through the request lifecycle around one
transport call:

    save:    validate -> POST (new) | PATCH (persisted) -> 200/201 applies
             the response, anything else lands in ``errors["status"]``
    destroy: new records are evicted locally; otherwise DELETE ->
             202/204 evicts, anything else lands in ``errors["status"]``

Network failures set ``errors["transport"]`` and propagate.

Concurrency:
    Nothing prevents a second save while one is in flight on the same
    record; the responses are applied in the order they arrive. Callers
    that need at-most-one-in-flight check ``record.is_in_flight`` first.

Example:
    >>> todo = store.add("todos", {"title": "Buy Milk"})
    >>> request = todo.save()
    >>> request.is_in_flight, request.title
    (True, 'Buy Milk')
    >>> await request
    <Todo todos:1>
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Generator
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from .codec import apply_resource, dump_document
from .errors import InputError, ValidationError
from .transport import Response
from .wire import Document, ResourceObject

if TYPE_CHECKING:
    from .record import Record, Snapshot

logger = logging.getLogger(__name__)

SAVE_SUCCESS = frozenset({200, 201})
DESTROY_SUCCESS = frozenset({202, 204})


class RequestProxy:
    """Awaitable handle for a pending save.

    Exposes the record, its in-flight flag and the attribute values the
    record had when the request was issued, so UI code can render the
    pending state before the response arrives.

    When created inside a running event loop the request is scheduled
    immediately as a task; otherwise it starts when first awaited.
    """

    def __init__(self, record: Record, coroutine: Coroutine[Any, Any, Record]) -> None:
        self.record = record
        self._captured = {name: record._values.get(name) for name in record.attribute_names}
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._request: Any = coroutine
        else:
            self._request = loop.create_task(coroutine)

    @property
    def is_in_flight(self) -> bool:
        return self.record.is_in_flight

    def __getattr__(self, name: str) -> Any:
        captured = self.__dict__.get("_captured", {})
        if name in captured:
            return captured[name]
        raise AttributeError(name)

    def __await__(self) -> Generator[Any, None, Record]:
        return self._request.__await__()

    def __repr__(self) -> str:
        state = "in flight" if self.is_in_flight else "settled"
        return f"<RequestProxy {self.record!r} {state}>"


def save(
    record: Record,
    *,
    relationships: list[str] | None = None,
    attributes: list[str] | None = None,
    query_params: dict[str, Any] | None = None,
    skip_validations: bool = False,
) -> RequestProxy:
    """Create or update a record on the server.

    Args:
        record: Record to persist
        relationships: Relationship names to send (none when None)
        attributes: Attribute names to send (all declared when None)
        query_params: Extra query string parameters
        skip_validations: Send without running validators

    Returns:
        RequestProxy resolving to the record

    Raises:
        ValidationError: If validation fails; no request is made
        InputError: If the record does not belong to a store
    """
    if not skip_validations and not record.validate():
        raise ValidationError(record.errors)
    store = record.store
    if store is None:
        raise InputError(f"Cannot save {record!r}: record has no store")

    if record.is_new:
        method, request_id = "POST", None
    else:
        method, request_id = "PATCH", record.id

    url = store.fetch_url(record.type, query_params, request_id)
    body = dump_document(record.jsonapi(attributes=attributes, relationships=relationships))

    record.is_in_flight = True
    return RequestProxy(record, _perform_save(record, url, method, body))


async def _perform_save(record: Record, url: str, method: str, body: str) -> Record:
    store = record.store
    previous_id = record.id
    try:
        response = await store.fetch(url, method=method, body=body)
    except Exception as e:
        record.is_in_flight = False
        record.errors = {"transport": e}
        raise

    if response.status not in SAVE_SUCCESS:
        record.is_in_flight = False
        record.errors = {"status": response.status}
        logger.warning(f"{method} {url} answered {response.status}")
        return record

    document = await _read_document(response, url)
    with store.batch():
        store.enlist(record)
        if document is not None and isinstance(document.data, ResourceObject):
            apply_resource(record, document.data)
        store.rekey(record, previous_id)
        if document is not None:
            store.create_models_from_data(document.included)

    record.is_in_flight = False
    record.is_dirty = False
    record.errors = {}
    record.set_previous_snapshot()
    return record


async def destroy(
    record: Record,
    *,
    params: dict[str, Any] | None = None,
    skip_remove: bool = False,
) -> Record | Snapshot:
    """Delete a record on the server and evict it from the store.

    A record that was never persisted is only evicted locally, and its
    pre-deletion snapshot is returned.

    Args:
        record: Record to delete
        params: Extra query string parameters
        skip_remove: Keep the record in the store after a successful delete

    Raises:
        InputError: If the record does not belong to a store
    """
    store = record.store
    if store is None:
        raise InputError(f"Cannot destroy {record!r}: record has no store")

    if record.is_new:
        snapshot = record.snapshot
        store.remove(record.type, record.id)
        return snapshot

    url = store.fetch_url(record.type, params, record.id)
    record.is_in_flight = True
    record.errors = {}
    try:
        response = await store.fetch(url, method="DELETE")
    except Exception as e:
        record.is_in_flight = False
        record.errors = {"transport": e}
        raise

    record.is_in_flight = False
    if response.status not in DESTROY_SUCCESS:
        record.errors = {"status": response.status}
        logger.warning(f"DELETE {url} answered {response.status}")
        return record

    if not skip_remove:
        store.remove(record.type, record.id)

    document = await _read_document(response, url)
    if document is not None:
        if isinstance(document.data, ResourceObject):
            with record.transaction():
                for name, value in document.data.attributes.items():
                    record._write(name, value, mark_dirty=False)
        store.create_models_from_data(document.included)
    return record


async def _read_document(response: Response, url: str) -> Document | None:
    """Parse a response body as a document; None when there is no body."""
    if response.status == 204:
        return None
    try:
        payload = await response.json()
    except ValueError as e:
        logger.warning(f"Response from {url} is not JSON: {e}")
        return None
    if not payload:
        return None
    try:
        return Document.model_validate(payload)
    except PydanticValidationError as e:
        raise InputError(f"Invalid JSON:API document from {url}: {e}") from e
