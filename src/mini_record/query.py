"""Exact-match queries over stored rows."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from mini_record.types import IDENTITY_COLUMN, coerce_value, parse_identity, to_text

if TYPE_CHECKING:
    from mini_record.instance import Record
    from mini_record.schema import Schema


class QueryEngine:
    """Evaluates conjunctive exact-match conditions against a type's rows.

    Every comparison is string equality between the stored text and the
    text form of the condition value. A missing store behaves as an empty
    one.
    """

    def __init__(self, schema: Schema) -> None:
        self.schema = schema

    def where(
        self, type_name: str, conditions: Mapping[str, Any] | None = None
    ) -> list[Record]:
        """Return records whose columns equal every condition, in storage order."""
        targets = {name: to_text(value) for name, value in (conditions or {}).items()}
        return [
            self.hydrate(type_name, row)
            for row in self.schema.storage.read_all(type_name)
            if all(row.get(name) == value for name, value in targets.items())
        ]

    def find(self, type_name: str, key: Any) -> Record | None:
        """Return the first record matching an identity or a condition mapping."""
        if key is None:
            return None
        conditions = key if isinstance(key, Mapping) else {IDENTITY_COLUMN: key}
        matches = self.where(type_name, conditions)
        return matches[0] if matches else None

    def find_by(self, type_name: str, column: str, value: Any) -> Record | None:
        """Return the first record whose ``column`` equals ``value``."""
        return self.find(type_name, {column: value})

    def all(self, type_name: str) -> list[Record]:
        """Return every record in storage order."""
        return [self.hydrate(type_name, row) for row in self.schema.storage.read_all(type_name)]

    def first(self, type_name: str) -> Record | None:
        """Return the record with the lowest identity."""
        return self._by_identity(type_name, min)

    def last(self, type_name: str) -> Record | None:
        """Return the record with the highest identity."""
        return self._by_identity(type_name, max)

    def count(self, type_name: str) -> int:
        return len(self.schema.storage.read_all(type_name))

    def _by_identity(self, type_name: str, pick: Any) -> Record | None:
        rows = self.schema.storage.read_all(type_name)
        if not rows:
            return None
        row = pick(rows, key=lambda r: parse_identity(r.get(IDENTITY_COLUMN)) or 0)
        return self.hydrate(type_name, row)

    def hydrate(self, type_name: str, row: Mapping[str, str]) -> Record:
        """Build a record from a stored row, converting values by declared kind."""
        model = self.schema.model(type_name)
        attributes: dict[str, Any] = {
            name: coerce_value(kind, row.get(name))
            for name, kind in model.descriptor.columns.items()
        }
        attributes[IDENTITY_COLUMN] = row.get(IDENTITY_COLUMN)
        return model.new(attributes)
