"""Storage manager for record tables."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from mini_record.table import Table, atomic_write
from mini_record.types import IDENTITY_COLUMN, TypeRegistry, parse_identity

logger = logging.getLogger(__name__)


class StorageManager:
    """Manages all tables for a schema."""

    SEQUENCES_FILE = "_sequences.json"

    def __init__(self, data_dir: Path, registry: TypeRegistry) -> None:
        """Initialize the storage manager.

        Args:
            data_dir: Directory to store table files.
            registry: Type registry containing all type declarations.
        """
        self.data_dir = data_dir
        self.registry = registry
        self._tables: dict[str, Table] = {}

        self.data_dir.mkdir(parents=True, exist_ok=True)

    def storage_path(self, type_name: str) -> Path:
        """Return the store file path for a type."""
        return self.data_dir / self.registry.storage_location(type_name)

    def get_table(self, type_name: str) -> Table:
        """Get the table for the given type.

        Raises:
            KeyError: If the type is not declared.
        """
        table = self._tables.get(type_name)
        if table is None:
            descriptor = self.registry.get_or_raise(type_name)
            table = Table(descriptor, self.storage_path(type_name))
            self._tables[type_name] = table
        return table

    def exists(self, type_name: str) -> bool:
        return self.get_table(type_name).exists()

    def create_table(self, type_name: str) -> None:
        """Create an empty store for a type, replacing any existing one."""
        self.get_table(type_name).create()
        self._reset_identity(type_name)

    def drop_table(self, type_name: str) -> None:
        """Delete the store for a type, if any."""
        self.get_table(type_name).drop()
        self._reset_identity(type_name)

    def read_all(self, type_name: str) -> list[dict[str, str]]:
        return self.get_table(type_name).read_all()

    def write_all(self, type_name: str, rows: Iterable[Mapping[str, Any]]) -> None:
        self.get_table(type_name).write_all(rows)

    # -- Identity high-water marks ------------------------------------------

    def next_identity(self, type_name: str, rows: Iterable[Mapping[str, str]]) -> int:
        """Return the identity for a new row of ``type_name``.

        One more than the larger of the highest identity in ``rows`` and the
        highest identity ever assigned in the store, so deleted identities
        are never handed out again.
        """
        highest = 0
        for row in rows:
            identity = parse_identity(row.get(IDENTITY_COLUMN))
            if identity is not None and identity > highest:
                highest = identity
        table_name = self.registry.get_or_raise(type_name).table_name
        recorded = self._load_sequences().get(table_name, 0)
        return max(highest, recorded) + 1

    def record_identity(self, type_name: str, identity: int) -> None:
        """Remember ``identity`` as the highest assigned for a type."""
        table_name = self.registry.get_or_raise(type_name).table_name
        sequences = self._load_sequences()
        if sequences.get(table_name, 0) >= identity:
            return
        sequences[table_name] = identity
        self._save_sequences(sequences)
        logger.debug("Identity high-water mark for %s is now %d", table_name, identity)

    def _reset_identity(self, type_name: str) -> None:
        table_name = self.registry.get_or_raise(type_name).table_name
        sequences = self._load_sequences()
        if sequences.pop(table_name, None) is not None:
            self._save_sequences(sequences)

    def _load_sequences(self) -> dict[str, int]:
        path = self.data_dir / self.SEQUENCES_FILE
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except ValueError:
            logger.warning("Ignoring unreadable identity marks in %s", path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {
            name: value
            for name, value in data.items()
            if isinstance(value, int) and not isinstance(value, bool)
        }

    def _save_sequences(self, sequences: dict[str, int]) -> None:
        path = self.data_dir / self.SEQUENCES_FILE
        with atomic_write(path) as f:
            json.dump(sequences, f, indent=2, sort_keys=True)

    def close(self) -> None:
        """Forget cached tables."""
        self._tables.clear()

    def __enter__(self) -> StorageManager:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
