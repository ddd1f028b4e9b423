"""
Store: the identity map for records.

One Store per application session holds, per resource type, a mapping of
id to Record. Every lookup for the same (type, id) returns the same
instance, so ``a is b`` implies identity equality.

This module provides:
- Local factory / lookup / removal (add, get_one, get_all, remove, reset)
- Server-backed finders (find_one, find_all)
- Document decoding (create_or_update_model, create_models_from_data)

Invariants:
    - At most one Record instance per (type, id)
    - A record saved under a temporary id stays reachable under that id
      (as an alias) after it receives its server id
    - Resources of unregistered types are skipped during decode

Threading:
    Not thread-safe. All identity-map mutations are expected to run on a
    single event loop; a multi-threaded host must funnel them through one
    owning task.

Example:
    >>> store = Store([Todo, Note], registry=registry)
    >>> todo = store.add("todos", {"title": "Buy Milk"})
    >>> store.get_one("todos", todo.id) is todo
    True
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import ExitStack, contextmanager
from typing import Any, overload

from pydantic import ValidationError as PydanticValidationError

from .codec import apply_resource
from .config import StoreSettings
from .errors import InputError, ServerError
from .record import Record
from .registry import SchemaRegistry, get_registry
from .transport import HttpxTransport, Response, Transport
from .utils import build_url
from .wire import Document, ResourceObject

logger = logging.getLogger(__name__)


class Store:
    """Identity map plus the decode side of the JSON:API codec.

    Args:
        models: Record subclasses to bind to their types
        registry: Schema registry (process default when omitted)
        settings: Connection settings (loaded from the environment when omitted)
        transport: Transport collaborator (httpx-backed when omitted)
    """

    def __init__(
        self,
        models: Iterable[type[Record]] = (),
        *,
        registry: SchemaRegistry | None = None,
        settings: StoreSettings | None = None,
        transport: Transport | None = None,
    ) -> None:
        self.registry = registry or get_registry()
        for model in models:
            self.registry.register_model(model)
        self.settings = settings or StoreSettings()
        self._transport = transport
        self._owns_transport = False
        self._records: dict[str, dict[str, Record]] = {}
        self._batch: ExitStack | None = None
        self._enlisted: set[int] = set()

    # -- Connection lifecycle --

    @property
    def transport(self) -> Transport:
        """The transport, built from settings on first use."""
        if self._transport is None:
            self._transport = HttpxTransport(self.settings)
            self._owns_transport = True
        return self._transport

    async def close(self) -> None:
        """Close a transport this store created."""
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            await self._transport.aclose()
            self._transport = None
            self._owns_transport = False

    async def __aenter__(self) -> Store:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -- Identity map --

    def get_type(self, type: str) -> dict[str, Record]:
        """Raw id -> record bucket for a type (aliases included)."""
        return self._records.setdefault(type, {})

    def get_one(self, type: str, id: Any) -> Record | None:
        """Record for (type, id), or None. Never constructs."""
        if id is None:
            return None
        return self._records.get(type, {}).get(str(id))

    def get_all(self, type: str) -> list[Record]:
        """Distinct records of a type (aliases collapsed)."""
        seen: dict[int, Record] = {}
        for record in self._records.get(type, {}).values():
            seen.setdefault(id(record), record)
        return list(seen.values())

    @overload
    def add(self, type: str, attributes: dict[str, Any] | None = None) -> Record: ...

    @overload
    def add(self, type: str, attributes: list[dict[str, Any]]) -> list[Record]: ...

    def add(
        self,
        type: str,
        attributes: dict[str, Any] | list[dict[str, Any]] | None = None,
    ) -> Record | list[Record]:
        """Construct and register record(s) of ``type``.

        Raises:
            UnknownTypeError: If the type has no schema entry
        """
        if isinstance(attributes, list):
            return [self.add(type, item) for item in attributes]
        self.registry.require_type(type)
        record = self._build(type, attributes or {})
        self._register(record)
        return record

    def remove(self, type: str, id: Any) -> None:
        """Evict a record, including any alias keys; no-op if absent."""
        bucket = self._records.get(type, {})
        record = bucket.pop(str(id), None)
        if record is None:
            return
        for key in [k for k, v in bucket.items() if v is record]:
            del bucket[key]
        logger.debug(f"Removed {type}:{id} from store")

    def reset(self) -> None:
        """Clear every bucket."""
        self._records.clear()
        self._enlisted.clear()
        logger.info("Store reset")

    def rekey(self, record: Record, previous_id: str | None) -> None:
        """Index record under its current id, keeping previous_id as an alias.

        Other records may still link to the temporary id by value, so the
        alias is never dropped.
        """
        bucket = self.get_type(record.type)
        bucket[str(record.id)] = record
        if previous_id is not None and str(previous_id) != str(record.id):
            bucket[str(previous_id)] = record
            logger.debug(f"Re-keyed {record.type}:{previous_id} as {record.id}")

    def _build(self, type: str, attributes: dict[str, Any]) -> Record:
        model = self.registry.model_for(type)
        if model is Record:
            return Record(attributes, store=self, registry=self.registry, type=type)
        return model(attributes, store=self, registry=self.registry)

    def _register(self, record: Record) -> None:
        self.get_type(record.type)[str(record.id)] = record
        logger.debug(f"Added {record.type}:{record.id} to store")

    # -- Batching --

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Hold observer delivery for every record touched until exit."""
        if self._batch is not None:
            yield
            return
        with ExitStack() as stack:
            self._batch = stack
            try:
                yield
            finally:
                self._batch = None
                self._enlisted.clear()

    def enlist(self, record: Record) -> None:
        """Join record's transaction to the current store batch, if any."""
        if self._batch is None or id(record) in self._enlisted:
            return
        self._enlisted.add(id(record))
        self._batch.enter_context(record.transaction())

    # -- Decoding --

    def create_or_update_model(self, resource: ResourceObject | dict[str, Any]) -> Record | None:
        """Upsert one resource object.

        Existing records are updated in place; new ones are constructed
        and registered. Unknown types and id-less resources are skipped.
        The result is clean and snapshotted.
        """
        if isinstance(resource, dict):
            resource = ResourceObject.model_validate(resource)
        if not self.registry.has_type(resource.type):
            logger.debug(f"Skipping resource of unregistered type '{resource.type}'")
            return None
        if resource.id is None:
            logger.debug(f"Skipping '{resource.type}' resource without id")
            return None

        record = self.get_one(resource.type, resource.id)
        if record is not None:
            self.enlist(record)
            with record.transaction():
                apply_resource(record, resource)
        else:
            attributes = {k: v for k, v in resource.attributes.items() if k not in ("id", "type")}
            attributes["id"] = resource.id
            attributes["relationships"] = {
                name: relationship.linkage()
                for name, relationship in resource.relationships.items()
                if not relationship.is_placeholder
            }
            if resource.meta is not None:
                attributes["meta"] = resource.meta
            record = self._build(resource.type, attributes)
            self._register(record)

        record.is_dirty = False
        record.set_previous_snapshot()
        return record

    def create_models_from_data(
        self, resources: Iterable[ResourceObject | dict[str, Any]]
    ) -> list[Record]:
        """Upsert a flat list of resource objects (e.g. ``included``)."""
        records = []
        with self.batch():
            for resource in resources:
                record = self.create_or_update_model(resource)
                if record is not None:
                    records.append(record)
        return records

    def update_from_document(self, payload: Document | dict[str, Any]) -> list[Record]:
        """Decode a whole document: included first, then primary data.

        Returns:
            Records for the primary data, in document order

        Raises:
            InputError: If the payload is not a JSON:API document
        """
        if isinstance(payload, dict):
            try:
                payload = Document.model_validate(payload)
            except PydanticValidationError as e:
                raise InputError(f"Invalid JSON:API document: {e}") from e
        with self.batch():
            self.create_models_from_data(payload.included)
            return self.create_models_from_data(payload.resources())

    # -- Server access --

    def fetch_url(
        self,
        type: str,
        query_params: dict[str, Any] | None = None,
        id: Any = None,
    ) -> str:
        """URL for a type's collection, or one resource when id is given."""
        endpoint = self.registry.model_for(type).endpoint or type
        return build_url(
            self.settings.base_url,
            endpoint,
            None if id is None else str(id),
            query_params,
        )

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        body: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> Response:
        """Send a request through the transport with default headers."""
        merged = {**self.settings.default_headers, **(headers or {})}
        logger.debug(f"{method} {url}")
        return await self.transport.fetch(url, method=method, body=body, headers=merged)

    async def find_one(
        self,
        type: str,
        id: Any,
        *,
        from_server: bool = True,
        query_params: dict[str, Any] | None = None,
    ) -> Record | None:
        """Look up one record, fetching and decoding it by default.

        Raises:
            ServerError: If the server does not answer 200
            TransportError: If the request fails
        """
        if not from_server:
            return self.get_one(type, id)
        url = self.fetch_url(type, query_params, id)
        records = await self._fetch_document(url)
        return records[0] if records else None

    async def find_all(
        self,
        type: str,
        *,
        from_server: bool = True,
        query_params: dict[str, Any] | None = None,
    ) -> list[Record]:
        """List records of a type, fetching and decoding them by default.

        Raises:
            ServerError: If the server does not answer 200
            TransportError: If the request fails
        """
        if not from_server:
            return self.get_all(type)
        url = self.fetch_url(type, query_params)
        return await self._fetch_document(url)

    async def _fetch_document(self, url: str) -> list[Record]:
        response = await self.fetch(url, method="GET")
        if response.status != 200:
            raise ServerError(f"GET {url} answered {response.status}", status=response.status, url=url)
        payload = await response.json()
        if payload is None:
            raise InputError(f"GET {url} returned an empty body")
        return self.update_from_document(payload)

