"""Per-type entry point for creating, storing and querying records."""

from __future__ import annotations

from collections.abc import Mapping
from functools import partial
from typing import TYPE_CHECKING, Any, Callable

from mini_record.instance import Record
from mini_record.types import IDENTITY_COLUMN, TypeDescriptor

if TYPE_CHECKING:
    from mini_record.schema import Schema
    from mini_record.table import Table


class Model:
    """Operations on one declared type within a schema.

    ``find_by_<column>`` is available for every declared column as a
    shortcut for ``find_by(column, value)``.
    """

    FINDER_PREFIX = "find_by_"

    def __init__(self, schema: Schema, descriptor: TypeDescriptor) -> None:
        self.schema = schema
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def record_class(self) -> type[Record]:
        return self.descriptor.record_class or Record

    @property
    def table(self) -> Table:
        return self.schema.storage.get_table(self.name)

    def create_table(self) -> None:
        """Create an empty store for this type, replacing any existing one."""
        self.schema.storage.create_table(self.name)

    def drop_table(self) -> None:
        """Delete this type's store, if any."""
        self.schema.storage.drop_table(self.name)

    def table_exists(self) -> bool:
        return self.schema.storage.exists(self.name)

    def new(self, attributes: Mapping[str, Any] | None = None, /, **kwargs: Any) -> Record:
        """Build a record without saving it."""
        if attributes is not None and not isinstance(attributes, Mapping):
            raise TypeError(f"Expected a mapping of attributes, got {type(attributes).__name__}")
        merged = dict(attributes or {})
        merged.update(kwargs)
        return self.record_class(self, merged)

    def create(self, attributes: Mapping[str, Any] | None = None, /, **kwargs: Any) -> Record:
        """Build a record and save it."""
        return self.new(attributes, **kwargs).save()

    def where(self, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any) -> list[Record]:
        merged = dict(conditions or {})
        merged.update(kwargs)
        return self.schema.query.where(self.name, merged)

    def find(self, key: Any) -> Record | None:
        """Find by identity, or by a mapping of conditions."""
        return self.schema.query.find(self.name, key)

    def find_by(self, column: str, value: Any) -> Record | None:
        return self.schema.query.find_by(self.name, column, value)

    def first(self) -> Record | None:
        return self.schema.query.first(self.name)

    def last(self) -> Record | None:
        return self.schema.query.last(self.name)

    def all(self) -> list[Record]:
        return self.schema.query.all(self.name)

    def count(self) -> int:
        return self.schema.query.count(self.name)

    def __getattr__(self, name: str) -> Callable[[Any], Record | None]:
        if name.startswith("_"):
            raise AttributeError(name)
        if name.startswith(self.FINDER_PREFIX):
            column = name[len(self.FINDER_PREFIX):]
            if column == IDENTITY_COLUMN or column in self.descriptor.columns:
                return partial(self.find_by, column)
        raise AttributeError(f"'{type(self).__name__}' for '{self.descriptor.name}' has no attribute '{name}'")

    def __repr__(self) -> str:
        return f"Model({self.name!r})"
