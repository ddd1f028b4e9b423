"""
Unit tests for the JSON:API codec.

Tests cover:
- Single-record encoding and filtering
- Full documents with included resources
- Cyclic relationship graphs
- Decoding through the store
"""

import json
from datetime import datetime

import pytest

from jsonapi_store import InputError, Store, build_document, server_response, to_full_jsonapi


class TestToJsonapi:
    """Tests for Record.jsonapi / to_jsonapi."""

    def test_new_record_omits_id(self, store):
        """A temporary id is never sent."""
        todo = store.add("todos", {"title": "Buy Milk"})

        data = todo.jsonapi()["data"]

        assert "id" not in data
        assert data["type"] == "todos"
        assert data["attributes"]["title"] == "Buy Milk"

    def test_persisted_record_has_id(self, store):
        """Persisted records carry their id."""
        todo = store.add("todos", {"id": 1, "title": "Buy Milk"})

        assert todo.jsonapi()["data"]["id"] == "1"

    def test_empty_values_sent(self, store):
        """Empty attribute values are encoded as they are."""
        todo = store.add("todos", {"id": "1", "title": ""})

        assert todo.jsonapi()["data"]["attributes"] == {"title": "", "tags": [], "options": {}}

    def test_attribute_filter(self, store):
        """Only the named attributes are encoded."""
        todo = store.add("todos", {"id": "1", "title": "t", "tags": ["a"]})

        assert todo.jsonapi(attributes=["tags"])["data"]["attributes"] == {"tags": ["a"]}

    def test_undeclared_values_not_encoded(self, store):
        """Values outside the schema stay local."""
        todo = store.add("todos", {"id": "1", "created_at": "2024-01-01"})

        assert "created_at" not in todo.jsonapi()["data"]["attributes"]

    def test_relationships_only_when_requested(self, store):
        """Relationships are omitted unless named."""
        todo = store.add("todos", {"id": "1"})
        note = store.add("notes", {"id": "2"})
        todo.notes.add(note)

        assert "relationships" not in todo.jsonapi()["data"]
        assert todo.jsonapi(relationships=["notes"])["data"]["relationships"] == {
            "notes": {"data": [{"type": "notes", "id": "2"}]}
        }

    def test_absent_to_one_is_null(self, store):
        """A declared to-one with no linkage encodes as null."""
        note = store.add("notes", {"id": "2"})

        relationships = note.jsonapi(relationships=["todo"])["data"]["relationships"]

        assert relationships == {"todo": {"data": None}}

    def test_meta_attached(self, store):
        """Record meta is sent alongside attributes."""
        todo = store.add("todos", {"id": "1", "meta": {"position": 3}})

        assert todo.jsonapi()["data"]["meta"] == {"position": 3}

    def test_full_jsonapi(self, store):
        """to_full_jsonapi includes every relationship."""
        note = store.add("notes", {"id": "2"})

        data = to_full_jsonapi(note)["data"]

        assert set(data["relationships"]) == {"todo"}

    def test_datetime_serialized(self, registry, store):
        """Datetime attributes are coerced and dumped as ISO 8601."""
        registry.add_attribute(type="todos", name="due_at", data_type=datetime)
        todo = store.add("todos", {"id": "1", "due_at": "2024-01-01T10:00:00"})

        encoded = json.loads(server_response(todo))

        assert encoded["data"]["attributes"]["due_at"] == "2024-01-01T10:00:00"


class TestServerResponse:
    """Tests for build_document / server_response."""

    def test_none_raises(self):
        """Encoding a null reference is an input error."""
        with pytest.raises(InputError):
            build_document(None)

    def test_empty_list(self):
        """An empty list encodes as empty data."""
        assert build_document([]) == {"data": []}

    def test_included(self, store):
        """Related records are included once."""
        todo = store.add("todos", {"id": "1"})
        for note_id in ("2", "3"):
            todo.notes.add(store.add("notes", {"id": note_id}))

        document = build_document(todo)

        assert document["data"]["id"] == "1"
        assert sorted(item["id"] for item in document["included"]) == ["2", "3"]

    def test_cycle_terminates(self, store):
        """A todo <-> note cycle yields each resource once."""
        todo = store.add("todos", {"id": "1"})
        note = store.add("notes", {"id": "2"})
        note.todo = todo

        document = json.loads(server_response(note))

        keys = [(item["type"], item["id"]) for item in document["included"]]
        assert keys == [("todos", "1")]

    def test_list_shares_included(self, store):
        """Resources reachable from several primaries are included once and primaries never."""
        todo = store.add("todos", {"id": "1"})
        first = store.add("notes", {"id": "2"})
        second = store.add("notes", {"id": "3"})
        todo.notes.add(first)
        todo.notes.add(second)

        document = build_document([first, second])

        keys = [(item["type"], item["id"]) for item in document["included"]]
        assert keys == [("todos", "1")]
        assert [item["id"] for item in document["data"]] == ["2", "3"]

    def test_saved_link_included_once(self, store):
        """A link written under a temporary id is included under the saved id only once."""
        todo = store.add("todos", {"title": "Buy Milk"})
        note = store.add("notes", {"id": "2"})
        note.todo = todo
        tmp_id = todo.id
        todo.id = "1"
        store.rekey(todo, tmp_id)

        document = build_document([todo, note])

        assert document["included"] == []
        assert [item["id"] for item in document["data"]] == ["1", "2"]

    def test_unresolved_targets_skipped(self, store):
        """Identifiers with no loaded record are not included."""
        todo = store.add(
            "todos",
            {"id": "1", "relationships": {"notes": {"data": [{"type": "notes", "id": "99"}]}}},
        )

        assert build_document(todo)["included"] == []


class TestRoundTrip:
    """Encoding then decoding preserves attributes."""

    def test_attributes_survive(self, registry, store):
        """A decoded copy has the same non-empty attributes."""
        todo = store.add("todos", {"id": "1", "title": "Buy Milk", "tags": ["a", "b"], "options": {"x": 1}})
        other = Store(registry=registry, transport=store.transport)

        [decoded] = other.update_from_document(json.loads(server_response(todo)))

        assert decoded is not todo
        assert decoded.attributes == todo.attributes
        assert not decoded.is_dirty
