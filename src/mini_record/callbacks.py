"""Save lifecycle callbacks."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from mini_record.types import Callback, TypeRegistry

if TYPE_CHECKING:
    from mini_record.instance import Record

logger = logging.getLogger(__name__)


class CallbackPhase(Enum):
    """Points in the save lifecycle where callbacks run."""

    BEFORE_SAVE = "before_save"
    AFTER_SAVE = "after_save"


class CallbackDispatcher:
    """Runs the callbacks registered for a record's type."""

    def __init__(self, registry: TypeRegistry) -> None:
        self.registry = registry

    def callbacks_for(self, phase: CallbackPhase, type_name: str) -> list[Callback]:
        """Return the callbacks for a phase in registration order."""
        descriptor = self.registry.get_or_raise(type_name)
        if phase is CallbackPhase.BEFORE_SAVE:
            return list(descriptor.before_save)
        return list(descriptor.after_save)

    def run(self, phase: CallbackPhase, instance: Record) -> None:
        """Invoke each callback of ``phase`` on ``instance`` in registration order.

        A string names a method of the record; anything else is called with
        the record. An exception from a callback stops the remaining
        callbacks and propagates to the caller.
        """
        for callback in self.callbacks_for(phase, instance.type_name):
            if isinstance(callback, str):
                logger.debug("Running %s %s on %r", phase.value, callback, instance)
                getattr(instance, callback)()
            else:
                logger.debug(
                    "Running %s %s on %r",
                    phase.value,
                    getattr(callback, "__name__", callback),
                    instance,
                )
                callback(instance)
