"""
Shared fixtures: the Todo/Note schema, a store, and a scripted transport.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from jsonapi_store import Record, SchemaRegistry, Store, StoreSettings, TransportResponse


class Todo(Record):
    type = "todos"


class Note(Record):
    type = "notes"


def declare_schema(registry: SchemaRegistry) -> SchemaRegistry:
    """Todo has many Notes; Note belongs to Todo."""
    registry.add_attribute(type="todos", name="title", data_type=str, default="NEW TODO")
    registry.add_attribute(type="todos", name="tags", data_type=list)
    registry.add_attribute(type="todos", name="options", data_type=dict)
    registry.add_relationship(
        type="todos", name="notes", kind="to_many", targets=("notes",), inverse="todo"
    )
    registry.add_attribute(type="notes", name="description", data_type=str)
    registry.add_relationship(
        type="notes", name="todo", kind="to_one", targets=("todos",), inverse="notes"
    )
    return registry


def respond(status: int, payload: Any = None) -> TransportResponse:
    """Build a canned response."""
    body = b"" if payload is None else json.dumps(payload).encode()
    return TransportResponse(status=status, body=body)


class FakeTransport:
    """Transport that replays queued responses and records every request."""

    def __init__(self, *responses: TransportResponse | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def queue(self, *responses: TransportResponse | Exception) -> None:
        self.responses.extend(responses)

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        body: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> TransportResponse:
        self.requests.append({"url": url, "method": method, "body": body, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def registry():
    """Fresh registry with the Todo/Note schema."""
    return declare_schema(SchemaRegistry())


@pytest.fixture
def transport():
    """Scripted transport with no queued responses."""
    return FakeTransport()


@pytest.fixture
def store(registry, transport):
    """Store bound to the Todo/Note models."""
    return Store(
        [Todo, Note],
        registry=registry,
        settings=StoreSettings(base_url="https://api.example.com"),
        transport=transport,
    )
