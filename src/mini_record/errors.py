"""Exceptions raised by the record engine."""


class MiniRecordError(Exception):
    """Base class for all record engine errors."""


class SchemaError(MiniRecordError, ValueError):
    """A type declaration is invalid or arrives after the registry is frozen."""


class SchemaMismatchError(MiniRecordError, ValueError):
    """A store's header or row arity disagrees with the declared columns."""


class InvalidStateError(MiniRecordError, RuntimeError):
    """An operation was attempted on a record in the wrong lifecycle state."""
