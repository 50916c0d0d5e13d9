"""Type descriptors and the registry that holds them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterator, Union

from mini_record.errors import SchemaError

if TYPE_CHECKING:
    from mini_record.instance import Record


# Name of the identity column, always first in a stored row
IDENTITY_COLUMN = "id"

# Kind given to foreign-key columns declared implicitly by belongs_to
FOREIGN_KEY_KIND = "INTEGER"

INTEGER_KINDS = frozenset({"INTEGER", "INT", "BIGINT", "SMALLINT"})
FLOAT_KINDS = frozenset({"FLOAT", "REAL", "DOUBLE", "DECIMAL", "NUMERIC"})
BOOLEAN_KINDS = frozenset({"BOOLEAN", "BOOL"})

TRUE_TEXT = frozenset({"true", "t", "1", "yes"})
FALSE_TEXT = frozenset({"false", "f", "0", "no"})

Callback = Union[str, Callable[["Record"], Any]]


def table_name_for(type_name: str) -> str:
    """Return the table name for a type: lower-cased with an appended 's'."""
    return type_name.lower() + "s"


def foreign_key_for(type_name: str) -> str:
    """Return the foreign-key column name that refers to a type."""
    return f"{type_name.lower()}_{IDENTITY_COLUMN}"


def to_text(value: Any) -> str:
    """Serialize a value to its stored text form."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def coerce_value(kind: str, text: str | None) -> Any:
    """Convert stored text back to a value of the declared kind.

    Kinds are free-form labels; known numeric and boolean kinds are
    converted, everything else stays text. Text that does not parse is
    returned unchanged.
    """
    if text is None or text == "":
        return None

    label = kind.upper()
    if label in INTEGER_KINDS:
        try:
            return int(text)
        except ValueError:
            return text
    if label in FLOAT_KINDS:
        try:
            return float(text)
        except ValueError:
            return text
    if label in BOOLEAN_KINDS:
        lowered = text.lower()
        if lowered in TRUE_TEXT:
            return True
        if lowered in FALSE_TEXT:
            return False
        return text
    return text


def parse_identity(value: Any) -> int | None:
    """Parse an identity value, returning None if it is not a positive integer."""
    if value is None or isinstance(value, bool):
        return None
    try:
        identity = int(value)
    except (TypeError, ValueError):
        return None
    return identity if identity > 0 else None


class RelationshipKind(Enum):
    """How a relationship accessor resolves related rows."""

    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"
    HAS_ONE = "has_one"


@dataclass(frozen=True)
class RelationshipDefinition:
    """A declared relationship from an owning type to a target type.

    For belongs_to the foreign key lives on the owning type; for has_many
    and has_one it lives on the target type and names the owner.
    """

    name: str
    kind: RelationshipKind
    owner: str
    target: str
    foreign_key: str


@dataclass
class TypeDescriptor:
    """Everything declared about one record type."""

    name: str
    columns: dict[str, str] = field(default_factory=dict)
    relationships: dict[str, RelationshipDefinition] = field(default_factory=dict)
    before_save: list[Callback] = field(default_factory=list)
    after_save: list[Callback] = field(default_factory=list)
    record_class: type | None = None

    @property
    def table_name(self) -> str:
        return table_name_for(self.name)

    @property
    def foreign_key(self) -> str:
        """Name of the column other types use to refer to this one."""
        return foreign_key_for(self.name)

    @property
    def column_names(self) -> list[str]:
        """Declared column names in declaration order (identity excluded)."""
        return list(self.columns)

    @property
    def header(self) -> list[str]:
        """Stored header: identity column followed by the declared columns."""
        return [IDENTITY_COLUMN, *self.columns]


class TypeRegistry:
    """Registry of all declared record types.

    Declarations are accepted until the registry is frozen; after that it
    is read-only and shared by every engine component.
    """

    def __init__(self) -> None:
        self._types: dict[str, TypeDescriptor] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise SchemaError("Type registry is frozen; declare types before creating a schema")

    def declare_type(self, name: str, record_class: type | None = None) -> TypeDescriptor:
        """Declare a type, returning the existing descriptor if already declared."""
        self._check_mutable()
        descriptor = self._types.get(name)
        if descriptor is None:
            descriptor = TypeDescriptor(name=name)
            self._types[name] = descriptor
        if record_class is not None:
            descriptor.record_class = record_class
        return descriptor

    def declare_column(self, type_name: str, name: str, kind: str) -> None:
        """Declare a column on a type.

        A new column is appended; re-declaring an existing column replaces
        its kind and keeps its position.
        """
        if name == IDENTITY_COLUMN:
            raise SchemaError(f"Column '{IDENTITY_COLUMN}' is reserved for record identity")
        descriptor = self.declare_type(type_name)
        descriptor.columns[name] = kind

    def declare_relationship(
        self,
        type_name: str,
        kind: RelationshipKind | str,
        target: str,
        name: str | None = None,
    ) -> RelationshipDefinition:
        """Declare a relationship from ``type_name`` to ``target``.

        The accessor name defaults to the lower-cased target name, or the
        target's table name for has_many. A belongs_to relationship declares
        its ``<target>_id`` column if the type does not already have it.
        """
        kind = RelationshipKind(kind)
        descriptor = self.declare_type(type_name)

        if kind is RelationshipKind.BELONGS_TO:
            foreign_key = foreign_key_for(target)
            if foreign_key not in descriptor.columns:
                self.declare_column(type_name, foreign_key, FOREIGN_KEY_KIND)
        else:
            foreign_key = foreign_key_for(type_name)

        if name is None:
            name = table_name_for(target) if kind is RelationshipKind.HAS_MANY else target.lower()

        relationship = RelationshipDefinition(
            name=name,
            kind=kind,
            owner=type_name,
            target=target,
            foreign_key=foreign_key,
        )
        descriptor.relationships[name] = relationship
        return relationship

    def register_before_save(self, type_name: str, callback: Callback) -> None:
        """Append a callback run before each save of a type."""
        self.declare_type(type_name).before_save.append(callback)

    def register_after_save(self, type_name: str, callback: Callback) -> None:
        """Append a callback run after each save of a type."""
        self.declare_type(type_name).after_save.append(callback)

    def bind_record_class(self, type_name: str, record_class: type) -> None:
        """Use ``record_class`` for records of a declared type."""
        self._check_mutable()
        self.get_or_raise(type_name).record_class = record_class

    def get(self, name: str) -> TypeDescriptor | None:
        """Get a type by name."""
        return self._types.get(name)

    def get_or_raise(self, name: str) -> TypeDescriptor:
        """Get a type by name, raising if not found."""
        descriptor = self._types.get(name)
        if descriptor is None:
            raise KeyError(f"Type '{name}' not found")
        return descriptor

    def columns_of(self, name: str) -> list[str]:
        """Return the declared columns of a type in declaration order."""
        return self.get_or_raise(name).column_names

    def storage_location(self, name: str) -> str:
        """Return the store file name for a type, relative to the data directory."""
        return f"{self.get_or_raise(name).table_name}.csv"

    def list_types(self) -> list[str]:
        """List all declared type names in declaration order."""
        return list(self._types)

    def freeze(self) -> None:
        """Validate all declarations and make the registry read-only.

        Freezing an already frozen registry is a no-op.
        """
        if self._frozen:
            return
        self._validate()
        self._frozen = True

    def _validate(self) -> None:
        from mini_record.instance import Record

        tables: dict[str, str] = {}
        for descriptor in self._types.values():
            reserved = set(dir(descriptor.record_class or Record))
            for column in descriptor.columns:
                if column in reserved:
                    raise SchemaError(
                        f"Column '{column}' on '{descriptor.name}' clashes with a "
                        "record attribute of the same name"
                    )
            other = tables.get(descriptor.table_name)
            if other is not None:
                raise SchemaError(
                    f"Types '{other}' and '{descriptor.name}' both map to table "
                    f"'{descriptor.table_name}'"
                )
            tables[descriptor.table_name] = descriptor.name

            for relationship in descriptor.relationships.values():
                if relationship.name in reserved:
                    raise SchemaError(
                        f"Relationship '{relationship.name}' on '{descriptor.name}' "
                        "clashes with a record attribute of the same name"
                    )
                if relationship.name in descriptor.columns:
                    raise SchemaError(
                        f"Relationship '{relationship.name}' on '{descriptor.name}' "
                        "shadows a column of the same name"
                    )
                target = self._types.get(relationship.target)
                if target is None:
                    raise SchemaError(
                        f"Relationship '{relationship.name}' on '{descriptor.name}' "
                        f"refers to undeclared type '{relationship.target}'"
                    )
                if (
                    relationship.kind is not RelationshipKind.BELONGS_TO
                    and relationship.foreign_key not in target.columns
                ):
                    raise SchemaError(
                        f"Type '{target.name}' needs a '{relationship.foreign_key}' column "
                        f"for {relationship.kind.value} '{relationship.name}' on "
                        f"'{descriptor.name}'"
                    )

    def __contains__(self, name: str) -> bool:
        return name in self._types

    def __iter__(self) -> Iterator[TypeDescriptor]:
        return iter(list(self._types.values()))

    def __len__(self) -> int:
        return len(self._types)
