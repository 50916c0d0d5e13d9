"""Schema class tying declarations, storage and queries together."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from mini_record.associations import AssociationResolver
from mini_record.callbacks import CallbackDispatcher
from mini_record.model import Model
from mini_record.parsing import TypeParser
from mini_record.query import QueryEngine
from mini_record.storage import StorageManager
from mini_record.types import TypeDescriptor, TypeRegistry

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path("db_data")

SCHEMA_SUFFIX = ".schema"


class Schema:
    """Declared record types with storage management.

    Constructing a schema freezes its registry; every engine component
    reads declarations through the schema rather than from global state.
    """

    def __init__(self, registry: TypeRegistry, data_dir: Path | str = DEFAULT_DATA_DIR) -> None:
        """Initialize a schema.

        Args:
            registry: Type registry with all type declarations.
            data_dir: Directory for storing table files.

        Raises:
            SchemaError: If the declarations are inconsistent.
        """
        registry.freeze()
        self.registry = registry
        self.storage = StorageManager(Path(data_dir), registry)
        self.query = QueryEngine(self)
        self.associations = AssociationResolver(self)
        self.callbacks = CallbackDispatcher(registry)
        self._models: dict[str, Model] = {}

    @classmethod
    def parse(
        cls,
        type_definitions: str,
        data_dir: Path | str = DEFAULT_DATA_DIR,
        record_classes: Mapping[str, type] | None = None,
    ) -> Schema:
        """Parse type declarations and create a schema.

        Args:
            type_definitions: DSL string declaring types.
            data_dir: Directory for storing table files.
            record_classes: Record subclasses to use for named types.

        Returns:
            A new Schema instance.
        """
        registry = TypeParser().parse(type_definitions)
        for type_name, record_class in (record_classes or {}).items():
            registry.bind_record_class(type_name, record_class)
        return cls(registry, data_dir)

    @classmethod
    def load(
        cls,
        path: Path | str,
        data_dir: Path | str = DEFAULT_DATA_DIR,
        record_classes: Mapping[str, type] | None = None,
    ) -> Schema:
        """Load type declarations from a file, or every ``*.schema`` file in a directory.

        Files in a directory are read in name order.
        """
        path = Path(path)
        if path.is_dir():
            files = sorted(path.glob(f"*{SCHEMA_SUFFIX}"))
        else:
            files = [path]

        parts = []
        for file in files:
            logger.debug("Loading declarations from %s", file)
            parts.append(file.read_text(encoding="utf-8"))
        return cls.parse("\n".join(parts), data_dir, record_classes)

    @property
    def data_dir(self) -> Path:
        return self.storage.data_dir

    def get_type(self, name: str) -> TypeDescriptor:
        """Get a type descriptor by name.

        Raises:
            KeyError: If the type is not declared.
        """
        return self.registry.get_or_raise(name)

    def list_types(self) -> list[str]:
        """List all declared type names."""
        return self.registry.list_types()

    def model(self, name: str) -> Model:
        """Return the model for a declared type.

        Raises:
            KeyError: If the type is not declared.
        """
        model = self._models.get(name)
        if model is None:
            model = Model(self, self.registry.get_or_raise(name))
            self._models[name] = model
        return model

    def __getitem__(self, name: str) -> Model:
        return self.model(name)

    def __contains__(self, name: str) -> bool:
        return name in self.registry

    def close(self) -> None:
        """Release cached models and tables."""
        self.storage.close()
        self._models.clear()

    def __enter__(self) -> Schema:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
