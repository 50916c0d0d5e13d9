"""In-memory records of declared types."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from mini_record.callbacks import CallbackPhase
from mini_record.errors import InvalidStateError
from mini_record.types import IDENTITY_COLUMN, parse_identity, to_text

if TYPE_CHECKING:
    from mini_record.model import Model

logger = logging.getLogger(__name__)


class RecordState(Enum):
    """Lifecycle state of a record relative to its store."""

    TRANSIENT = "transient"
    PERSISTED = "persisted"
    DELETED = "deleted"


def _find_row(rows: list[dict[str, str]], identity: int) -> dict[str, str] | None:
    key = str(identity)
    for row in rows:
        if row.get(IDENTITY_COLUMN) == key:
            return row
    return None


class Record:
    """A record of a declared type.

    Declared columns are readable and writable as attributes (or with
    ``record["column"]``); relationship accessors resolve through the
    schema's association resolver. A record is Transient until its first
    save, Persisted afterwards, and Deleted once its row is removed.

    Subclasses bound to a type may define methods named by the type's
    save callbacks.
    """

    def __init__(self, model: Model, attributes: Mapping[str, Any] | None = None) -> None:
        """Initialize a record.

        Args:
            model: The model of the record's type.
            attributes: Initial column values. Unknown names are ignored; a
                parseable ``id`` seeds the identity and marks the record
                Persisted (used when hydrating stored rows).
        """
        object.__setattr__(self, "_model", model)
        object.__setattr__(self, "_values", {name: None for name in model.descriptor.columns})
        object.__setattr__(self, "_id", None)
        object.__setattr__(self, "_state", RecordState.TRANSIENT)

        if attributes:
            for name, value in attributes.items():
                if name == IDENTITY_COLUMN:
                    identity = parse_identity(value)
                    if identity is not None:
                        object.__setattr__(self, "_id", identity)
                        object.__setattr__(self, "_state", RecordState.PERSISTED)
                elif name in self._values:
                    self._values[name] = value

    # -- Attribute access -------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        # Only called when normal lookup fails
        if name.startswith("_"):
            raise AttributeError(name)
        values = self._values
        if name in values:
            return values[name]
        relationship = self._model.descriptor.relationships.get(name)
        if relationship is not None:
            return self._model.schema.associations.resolve(self, relationship)
        raise AttributeError(f"'{self._model.name}' record has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self._values:
            self._values[name] = value
            return
        relationship = self._model.descriptor.relationships.get(name)
        if relationship is not None:
            self._model.schema.associations.assign(self, relationship, value)
            return
        object.__setattr__(self, name, value)

    def __getitem__(self, column: str) -> Any:
        if column == IDENTITY_COLUMN:
            return self._id
        try:
            return self._values[column]
        except KeyError:
            raise KeyError(f"'{self._model.name}' has no column '{column}'") from None

    def __setitem__(self, column: str, value: Any) -> None:
        if column not in self._values:
            raise KeyError(f"'{self._model.name}' has no column '{column}'")
        self._values[column] = value

    # -- Properties -------------------------------------------------------

    @property
    def id(self) -> int | None:
        return self._id

    @property
    def model(self) -> Model:
        return self._model

    @property
    def type_name(self) -> str:
        return self._model.name

    @property
    def state(self) -> RecordState:
        return self._state

    @property
    def is_new_record(self) -> bool:
        return self._state is RecordState.TRANSIENT

    @property
    def is_persisted(self) -> bool:
        return self._state is RecordState.PERSISTED

    @property
    def is_deleted(self) -> bool:
        return self._state is RecordState.DELETED

    @property
    def attributes(self) -> dict[str, Any]:
        """Column values in declaration order (identity excluded)."""
        return dict(self._values)

    def to_dict(self) -> dict[str, Any]:
        """Identity and column values as a plain dict."""
        return {IDENTITY_COLUMN: self._id, **self._values}

    # -- Persistence ------------------------------------------------------

    def save(self) -> Record:
        """Persist the record and return it.

        Runs the before-save callbacks, inserts a new row (assigning the
        next identity) or rewrites the existing one, then runs the
        after-save callbacks.

        Raises:
            InvalidStateError: If the record was deleted, or its row has
                disappeared from the store.
        """
        if self._state is RecordState.DELETED:
            raise InvalidStateError(f"Cannot save deleted {self.type_name} {self._id}")

        schema = self._model.schema
        schema.callbacks.run(CallbackPhase.BEFORE_SAVE, self)

        storage = schema.storage
        type_name = self.type_name
        if not storage.exists(type_name):
            storage.create_table(type_name)

        rows = storage.read_all(type_name)
        values = {name: to_text(value) for name, value in self._values.items()}

        if self._id is None:
            identity = storage.next_identity(type_name, rows)
            rows.append({IDENTITY_COLUMN: str(identity), **values})
            storage.write_all(type_name, rows)
            storage.record_identity(type_name, identity)
            object.__setattr__(self, "_id", identity)
            logger.debug("Inserted %s %d", type_name, identity)
        else:
            row = _find_row(rows, self._id)
            if row is None:
                raise InvalidStateError(
                    f"{type_name} {self._id} no longer exists in {storage.storage_path(type_name)}"
                )
            row.update(values)
            storage.write_all(type_name, rows)
            logger.debug("Updated %s %d", type_name, self._id)

        object.__setattr__(self, "_state", RecordState.PERSISTED)
        schema.callbacks.run(CallbackPhase.AFTER_SAVE, self)
        return self

    def update(self, attributes: Mapping[str, Any] | None = None, /, **kwargs: Any) -> Record | None:
        """Write the given column values straight to the stored row.

        Keys that are not declared columns are ignored. Save callbacks are
        not run. The record itself takes the new values too.

        Returns:
            A freshly loaded record for the updated row.

        Raises:
            InvalidStateError: If the record is not Persisted, or its row
                has disappeared from the store.
        """
        self._require_persisted("update")

        changes = dict(attributes or {})
        changes.update(kwargs)
        changes = {name: value for name, value in changes.items() if name in self._values}

        storage = self._model.schema.storage
        type_name = self.type_name
        rows = storage.read_all(type_name)
        row = _find_row(rows, self._id)
        if row is None:
            raise InvalidStateError(
                f"{type_name} {self._id} no longer exists in {storage.storage_path(type_name)}"
            )
        for name, value in changes.items():
            row[name] = to_text(value)
            self._values[name] = value
        storage.write_all(type_name, rows)
        logger.debug("Updated columns %s of %s %d", sorted(changes), type_name, self._id)

        return self._model.find(self._id)

    def delete(self) -> None:
        """Remove the record's row from the store.

        The record keeps its identity but becomes Deleted; it can no longer
        be saved, updated or deleted.

        Raises:
            InvalidStateError: If the record is not Persisted.
        """
        self._require_persisted("delete")

        storage = self._model.schema.storage
        type_name = self.type_name
        if storage.exists(type_name):
            key = str(self._id)
            rows = storage.read_all(type_name)
            remaining = [row for row in rows if row.get(IDENTITY_COLUMN) != key]
            storage.write_all(type_name, remaining)
            logger.debug("Deleted %d row(s) of %s %d", len(rows) - len(remaining), type_name, self._id)

        object.__setattr__(self, "_state", RecordState.DELETED)

    def reload(self) -> Record | None:
        """Return a freshly loaded copy of this record, or None if its row is gone."""
        if self._id is None:
            return None
        return self._model.find(self._id)

    def _require_persisted(self, operation: str) -> None:
        if self._state is RecordState.TRANSIENT:
            raise InvalidStateError(f"Cannot {operation} a {self.type_name} that has not been saved")
        if self._state is RecordState.DELETED:
            raise InvalidStateError(f"Cannot {operation} deleted {self.type_name} {self._id}")

    # -- Comparison -------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        if self.type_name != other.type_name or self._id != other._id:
            return False
        mine = {name: to_text(value) for name, value in self._values.items()}
        theirs = {name: to_text(value) for name, value in other._values.items()}
        return mine == theirs

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        parts = [f"id={self._id!r}"]
        parts.extend(f"{name}={value!r}" for name, value in self._values.items())
        return f"{self.type_name}({', '.join(parts)})"
