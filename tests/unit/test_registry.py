"""
Unit tests for schema registry.

Tests cover:
- Attribute and relationship declaration
- Validation attachment
- Type lookup and suggestions
- Process-default registry
"""

from datetime import datetime

import pytest

from jsonapi_store import (
    Record,
    RelationKind,
    SchemaError,
    SchemaRegistry,
    UnknownTypeError,
    get_registry,
    reset_registry,
    validate_presence,
)


class TestAttributes:
    """Tests for attribute declarations."""

    def test_add_attribute(self):
        """Declared attributes appear in structure_for."""
        registry = SchemaRegistry()

        registry.add_attribute(type="todos", name="title", data_type=str, default="NEW TODO")

        definition = registry.structure_for("todos")["title"]
        assert definition.data_type is str
        assert definition.default_value() == "NEW TODO"

    def test_declaration_order_kept(self):
        """Attributes come back in declaration order."""
        registry = SchemaRegistry()
        for name in ("b", "a", "c"):
            registry.add_attribute(type="todos", name=name)

        assert list(registry.structure_for("todos")) == ["b", "a", "c"]

    def test_id_cannot_be_declared(self):
        """'id' is implicit."""
        registry = SchemaRegistry()

        with pytest.raises(SchemaError, match="implicit"):
            registry.add_attribute(type="todos", name="id")

    def test_empty_name_raises(self):
        """Attribute name must be non-empty."""
        registry = SchemaRegistry()

        with pytest.raises(SchemaError):
            registry.add_attribute(type="todos", name="")

    def test_redeclaration_replaces(self):
        """Last declaration wins."""
        registry = SchemaRegistry()
        registry.add_attribute(type="todos", name="count", data_type=int, default=1)
        registry.add_attribute(type="todos", name="count", data_type=int, default=2)

        assert registry.structure_for("todos")["count"].default_value() == 2

    def test_untyped_defaults(self):
        """Without a default, str/list/dict get empty values, others None."""
        registry = SchemaRegistry()
        registry.add_attribute(type="todos", name="title", data_type=str)
        registry.add_attribute(type="todos", name="tags", data_type=list)
        registry.add_attribute(type="todos", name="options", data_type=dict)
        registry.add_attribute(type="todos", name="count", data_type=int)

        defaults = {
            name: definition.default_value()
            for name, definition in registry.structure_for("todos").items()
        }

        assert defaults == {"title": "", "tags": [], "options": {}, "count": None}

    def test_datetime_coercion(self):
        """Datetime attributes accept ISO strings."""
        registry = SchemaRegistry()
        definition = registry.add_attribute(type="todos", name="due_at", data_type=datetime)

        assert definition.coerce("2024-01-01T10:00:00") == datetime(2024, 1, 1, 10, 0)

    def test_structure_for_is_a_copy(self):
        """Mutating the returned map does not touch the registry."""
        registry = SchemaRegistry()
        registry.add_attribute(type="todos", name="title", data_type=str)

        registry.structure_for("todos").clear()

        assert "title" in registry.structure_for("todos")


class TestRelationships:
    """Tests for relationship declarations."""

    def test_add_relationship(self):
        """Relationships are stored with kind, targets and inverse."""
        registry = SchemaRegistry()

        registry.add_relationship(
            type="todos", name="notes", kind="to_many", targets=("notes",), inverse="todo"
        )

        definition = registry.relationship("todos", "notes")
        assert definition.kind is RelationKind.TO_MANY
        assert definition.targets == ("notes",)
        assert definition.inverse == "todo"
        assert definition.is_to_many

    def test_single_target_string(self):
        """A bare string target is accepted."""
        registry = SchemaRegistry()

        definition = registry.add_relationship(type="notes", name="todo", kind="to_one", targets="todos")

        assert definition.targets == ("todos",)
        assert not definition.is_polymorphic

    def test_polymorphic_to_one(self):
        """A to-one may accept several target types."""
        registry = SchemaRegistry()

        definition = registry.add_relationship(
            type="comments", name="subject", kind="to_one", targets=("todos", "notes")
        )

        assert definition.is_polymorphic
        assert definition.accepts("notes")
        assert not definition.accepts("users")

    def test_polymorphic_to_many_raises(self):
        """To-many relationships have a single target type."""
        registry = SchemaRegistry()

        with pytest.raises(SchemaError, match="single target"):
            registry.add_relationship(
                type="todos", name="items", kind="to_many", targets=("notes", "tasks")
            )

    def test_unknown_kind_raises(self):
        """Kind must be to_one or to_many."""
        registry = SchemaRegistry()

        with pytest.raises(SchemaError, match="Invalid relationship kind"):
            registry.add_relationship(type="todos", name="notes", kind="many", targets=("notes",))

    def test_missing_target_raises(self):
        """At least one target type is required."""
        registry = SchemaRegistry()

        with pytest.raises(SchemaError):
            registry.add_relationship(type="todos", name="notes", kind="to_many", targets=())


class TestValidations:
    """Tests for validation attachment."""

    def test_presence_by_default(self):
        """add_validation without a validator attaches presence."""
        registry = SchemaRegistry()
        registry.add_attribute(type="todos", name="title", data_type=str)

        registry.add_validation(type="todos", name="title")

        assert registry.structure_for("todos")["title"].validator is validate_presence

    def test_validation_before_attribute(self):
        """A validation may be declared first and survives the attribute declaration."""
        registry = SchemaRegistry()

        registry.add_validation(type="todos", name="title")
        registry.add_attribute(type="todos", name="title", data_type=str, default="x")

        definition = registry.structure_for("todos")["title"]
        assert definition.validator is validate_presence
        assert definition.default_value() == "x"

    def test_presence_result(self):
        """Presence fails on None and empty string only."""
        assert not validate_presence(None).is_valid
        assert not validate_presence("").is_valid
        assert validate_presence(0).is_valid
        assert validate_presence("x").is_valid
        assert validate_presence("").errors == [{"key": "blank", "message": "can't be blank"}]


class TestTypeLookup:
    """Tests for type lookup."""

    def test_has_type(self, registry):
        """Declared types are known."""
        assert registry.has_type("todos")
        assert registry.has_type("notes")
        assert not registry.has_type("users")

    def test_types(self, registry):
        """types() lists every declared type once."""
        assert list(registry.types()) == ["todos", "notes"]

    def test_require_type_suggests(self, registry):
        """Unknown types raise with close matches."""
        with pytest.raises(UnknownTypeError) as exc_info:
            registry.require_type("todo")

        assert exc_info.value.type_name == "todo"
        assert "todos" in exc_info.value.suggestions
        assert exc_info.value.code == "UNKNOWN_TYPE"

    def test_model_for(self, registry):
        """Bound models are returned, base Record otherwise."""

        class Todo(Record):
            type = "todos"

        registry.register_model(Todo)

        assert registry.model_for("todos") is Todo
        assert registry.model_for("notes") is Record

    def test_register_model_without_type(self):
        """A model class must name its type."""
        registry = SchemaRegistry()

        class Anonymous(Record):
            pass

        with pytest.raises(SchemaError):
            registry.register_model(Anonymous)

    def test_reset(self, registry):
        """reset() drops every declaration."""
        registry.reset()

        assert list(registry.types()) == []
        assert registry.structure_for("todos") == {}


class TestGlobalRegistry:
    """Tests for the process-default registry."""

    def test_singleton(self):
        """get_registry returns the same instance until reset."""
        reset_registry()
        first = get_registry()

        assert get_registry() is first

        reset_registry()
        assert get_registry() is not first
        reset_registry()
