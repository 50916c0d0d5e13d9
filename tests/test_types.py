"""Tests for type declarations and the type registry."""

import pytest

from mini_record import Record
from mini_record.errors import SchemaError
from mini_record.types import (
    RelationshipKind,
    TypeRegistry,
    coerce_value,
    foreign_key_for,
    table_name_for,
    to_text,
)


class TestNaming:
    """Tests for name derivation."""

    def test_table_name_appends_s(self):
        """Table names are lower-cased with a plain 's' appended."""
        assert table_name_for("User") == "users"
        assert table_name_for("Person") == "persons"

    def test_foreign_key(self):
        """Foreign keys are the lower-cased type name plus _id."""
        assert foreign_key_for("Author") == "author_id"

    def test_storage_location(self):
        """The store file is named after the table."""
        registry = TypeRegistry()
        registry.declare_column("Post", "title", "TEXT")
        assert registry.storage_location("Post") == "posts.csv"


class TestColumns:
    """Tests for column declarations."""

    def test_columns_keep_declaration_order(self):
        """Columns are listed in the order they were declared."""
        registry = TypeRegistry()
        registry.declare_column("User", "name", "TEXT")
        registry.declare_column("User", "email", "TEXT")
        registry.declare_column("User", "age", "INTEGER")

        assert registry.columns_of("User") == ["name", "email", "age"]

    def test_redeclare_keeps_position(self):
        """Re-declaring a column replaces its kind without moving it."""
        registry = TypeRegistry()
        registry.declare_column("User", "name", "TEXT")
        registry.declare_column("User", "age", "TEXT")
        registry.declare_column("User", "name", "VARCHAR")

        descriptor = registry.get_or_raise("User")
        assert descriptor.column_names == ["name", "age"]
        assert descriptor.columns["name"] == "VARCHAR"

    def test_identity_column_reserved(self):
        """The identity column cannot be declared."""
        registry = TypeRegistry()
        with pytest.raises(SchemaError):
            registry.declare_column("User", "id", "INTEGER")

    def test_header_starts_with_identity(self):
        """The stored header is id followed by the declared columns."""
        registry = TypeRegistry()
        registry.declare_column("User", "name", "TEXT")
        assert registry.get_or_raise("User").header == ["id", "name"]

    def test_unknown_type(self):
        """Looking up an undeclared type raises KeyError."""
        registry = TypeRegistry()
        assert registry.get("Nope") is None
        with pytest.raises(KeyError):
            registry.get_or_raise("Nope")


class TestRelationships:
    """Tests for relationship declarations."""

    def test_belongs_to_declares_foreign_key(self):
        """belongs_to adds the <target>_id column when it is missing."""
        registry = TypeRegistry()
        registry.declare_column("Book", "title", "TEXT")
        rel = registry.declare_relationship("Book", RelationshipKind.BELONGS_TO, "Author")

        assert rel.name == "author"
        assert rel.foreign_key == "author_id"
        assert registry.columns_of("Book") == ["title", "author_id"]
        assert registry.get_or_raise("Book").columns["author_id"] == "INTEGER"

    def test_belongs_to_keeps_explicit_foreign_key(self):
        """An explicitly declared foreign key is not moved or retyped."""
        registry = TypeRegistry()
        registry.declare_column("Book", "author_id", "BIGINT")
        registry.declare_column("Book", "title", "TEXT")
        registry.declare_relationship("Book", "belongs_to", "Author")

        descriptor = registry.get_or_raise("Book")
        assert descriptor.column_names == ["author_id", "title"]
        assert descriptor.columns["author_id"] == "BIGINT"

    def test_default_accessor_names(self):
        """has_many defaults to the table name, has_one to the type name."""
        registry = TypeRegistry()
        many = registry.declare_relationship("Author", RelationshipKind.HAS_MANY, "Book")
        one = registry.declare_relationship("Author", RelationshipKind.HAS_ONE, "Profile")

        assert many.name == "books"
        assert many.foreign_key == "author_id"
        assert one.name == "profile"
        assert one.foreign_key == "author_id"

    def test_explicit_accessor_name(self):
        """An explicit name is registered as given."""
        registry = TypeRegistry()
        rel = registry.declare_relationship("Author", "has_many", "Book", name="works")
        assert registry.get_or_raise("Author").relationships == {"works": rel}

    def test_unknown_kind(self):
        """An unknown relationship kind is rejected."""
        registry = TypeRegistry()
        with pytest.raises(ValueError):
            registry.declare_relationship("Author", "has_several", "Book")


class TestFreeze:
    """Tests for validation and freezing."""

    def _blog(self) -> TypeRegistry:
        registry = TypeRegistry()
        registry.declare_column("Author", "name", "TEXT")
        registry.declare_relationship("Author", "has_many", "Book")
        registry.declare_column("Book", "title", "TEXT")
        registry.declare_relationship("Book", "belongs_to", "Author")
        return registry

    def test_freeze_blocks_declarations(self):
        """A frozen registry rejects further declarations."""
        registry = self._blog()
        registry.freeze()

        assert registry.frozen
        with pytest.raises(SchemaError):
            registry.declare_column("Author", "email", "TEXT")
        with pytest.raises(SchemaError):
            registry.register_before_save("Author", "touch")

    def test_freeze_twice(self):
        """Freezing again is a no-op."""
        registry = self._blog()
        registry.freeze()
        registry.freeze()
        assert registry.frozen

    def test_undeclared_target(self):
        """Relationships must point at declared types."""
        registry = TypeRegistry()
        registry.declare_column("Book", "title", "TEXT")
        registry.declare_relationship("Book", "belongs_to", "Author")

        with pytest.raises(SchemaError, match="undeclared type 'Author'"):
            registry.freeze()
        assert not registry.frozen

    def test_has_many_needs_foreign_key_on_target(self):
        """has_many requires the target to carry the owner's foreign key."""
        registry = TypeRegistry()
        registry.declare_column("Author", "name", "TEXT")
        registry.declare_relationship("Author", "has_many", "Book")
        registry.declare_column("Book", "title", "TEXT")

        with pytest.raises(SchemaError, match="author_id"):
            registry.freeze()

    def test_table_name_collision(self):
        """Two types may not map to the same table."""
        registry = TypeRegistry()
        registry.declare_column("User", "name", "TEXT")
        registry.declare_column("USER", "name", "TEXT")

        with pytest.raises(SchemaError, match="users"):
            registry.freeze()

    def test_relationship_shadowing_column(self):
        """A relationship name may not equal a column name."""
        registry = self._blog()
        registry.declare_column("Author", "books", "TEXT")

        with pytest.raises(SchemaError, match="shadows"):
            registry.freeze()

    def test_column_clashes_with_record_attribute(self):
        """A column may not reuse the name of a record attribute."""
        registry = TypeRegistry()
        registry.declare_column("Address", "street", "TEXT")
        registry.declare_column("Address", "state", "TEXT")

        with pytest.raises(SchemaError, match="Column 'state' on 'Address'"):
            registry.freeze()
        assert not registry.frozen

    @pytest.mark.parametrize("column", ["model", "attributes", "save", "to_dict", "is_deleted"])
    def test_record_members_reserved(self, column):
        """Every public record member is off limits as a column."""
        registry = TypeRegistry()
        registry.declare_column("Widget", column, "TEXT")

        with pytest.raises(SchemaError, match="clashes"):
            registry.freeze()

    def test_relationship_clashes_with_record_attribute(self):
        """A relationship accessor may not hide a record attribute."""
        registry = TypeRegistry()
        registry.declare_column("Widget", "label", "TEXT")
        registry.declare_column("Model", "widget_id", "INTEGER")
        registry.declare_relationship("Widget", "has_one", "Model")

        with pytest.raises(SchemaError, match="Relationship 'model' on 'Widget'"):
            registry.freeze()

    def test_renamed_relationship_avoids_clash(self):
        """Renaming the accessor resolves the clash."""
        registry = TypeRegistry()
        registry.declare_column("Widget", "label", "TEXT")
        registry.declare_column("Model", "widget_id", "INTEGER")
        registry.declare_relationship("Widget", "has_one", "Model", name="blueprint")

        registry.freeze()
        assert registry.frozen

    def test_bound_record_class_members_reserved(self):
        """Members of a bound record class are reserved too."""
        class Order(Record):
            def total(self):
                return 0

        registry = TypeRegistry()
        registry.declare_column("Order", "total", "FLOAT")
        registry.bind_record_class("Order", Order)

        with pytest.raises(SchemaError, match="Column 'total' on 'Order'"):
            registry.freeze()


class TestCallbackRegistration:
    """Tests for callback registration."""

    def test_callbacks_append_in_order(self):
        """Callbacks are kept in registration order without de-duplication."""
        registry = TypeRegistry()
        registry.register_before_save("User", "f1")
        registry.register_before_save("User", "f2")
        registry.register_before_save("User", "f1")
        registry.register_after_save("User", "g1")

        descriptor = registry.get_or_raise("User")
        assert descriptor.before_save == ["f1", "f2", "f1"]
        assert descriptor.after_save == ["g1"]


class TestTextConversion:
    """Tests for stored text conversion."""

    def test_to_text(self):
        """Values are written as text with an empty field for None."""
        assert to_text(None) == ""
        assert to_text(12) == "12"
        assert to_text(True) == "true"
        assert to_text("Ada") == "Ada"

    def test_coerce_known_kinds(self):
        """Numeric and boolean kinds are converted on read."""
        assert coerce_value("INTEGER", "42") == 42
        assert coerce_value("int", "7") == 7
        assert coerce_value("REAL", "2.5") == 2.5
        assert coerce_value("BOOLEAN", "true") is True
        assert coerce_value("BOOLEAN", "0") is False

    def test_coerce_empty_is_none(self):
        """An empty field reads back as None."""
        assert coerce_value("TEXT", "") is None
        assert coerce_value("INTEGER", "") is None

    def test_coerce_leaves_unparseable_text(self):
        """Text that does not parse as the declared kind is left alone."""
        assert coerce_value("INTEGER", "abc") == "abc"
        assert coerce_value("TEXT", "42") == "42"
        assert coerce_value("JSON", "{}") == "{}"
