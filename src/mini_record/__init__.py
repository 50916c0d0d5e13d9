"""Mini Record - typed records mapped to per-type CSV files."""

from mini_record.associations import AssociationResolver, HasManyCollection
from mini_record.callbacks import CallbackDispatcher, CallbackPhase
from mini_record.errors import (
    InvalidStateError,
    MiniRecordError,
    SchemaError,
    SchemaMismatchError,
)
from mini_record.instance import Record, RecordState
from mini_record.model import Model
from mini_record.parsing import TypeParser
from mini_record.query import QueryEngine
from mini_record.schema import Schema
from mini_record.storage import StorageManager
from mini_record.table import Table
from mini_record.types import (
    RelationshipDefinition,
    RelationshipKind,
    TypeDescriptor,
    TypeRegistry,
)

__all__ = [
    # Main API
    "Schema",
    "Model",
    "Record",
    "RecordState",
    "TypeParser",
    # Declarations
    "TypeRegistry",
    "TypeDescriptor",
    "RelationshipKind",
    "RelationshipDefinition",
    # Engine
    "QueryEngine",
    "AssociationResolver",
    "HasManyCollection",
    "CallbackDispatcher",
    "CallbackPhase",
    # Storage
    "Table",
    "StorageManager",
    # Errors
    "MiniRecordError",
    "SchemaError",
    "SchemaMismatchError",
    "InvalidStateError",
]

__version__ = "0.1.0"
