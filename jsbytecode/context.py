"""Variable scope table — assigns and resolves variable slots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from . import constants

logger = logging.getLogger(__name__)


class ContextCheckpoint(NamedTuple):
    slot_count: int
    bindings: dict[str, int]


@dataclass
class Context:
    """Maps variable names to monotonically increasing slot indices.

    A name declared twice gets a fresh slot each time; lookups resolve to the
    most recent one. Slots are never reused, so ``get_variable_name`` keeps
    answering for shadowed slots.
    """

    known_globals: frozenset[str] = constants.KNOWN_GLOBALS
    _names: list[str] = field(default_factory=list)
    _values: list[Any] = field(default_factory=list)
    _bindings: dict[str, int] = field(default_factory=dict)

    def define_variable(self, name: str, initial: Any = None) -> int:
        slot = len(self._names)
        self._names.append(name)
        self._values.append(initial)
        self._bindings[name] = slot
        logger.debug("Defined %s at slot %d", name, slot)
        return slot

    def get_variable_index(self, name: str) -> int | None:
        return self._bindings.get(name)

    def is_global_variable(self, name: str) -> bool:
        return name in self.known_globals

    def get_variable_name(self, slot: int) -> str | None:
        if 0 <= slot < len(self._names):
            return self._names[slot]
        return None

    def get_initial_value(self, slot: int) -> Any:
        return self._values[slot]

    @property
    def slot_count(self) -> int:
        return len(self._names)

    def checkpoint(self) -> ContextCheckpoint:
        return ContextCheckpoint(slot_count=len(self._names), bindings=dict(self._bindings))

    def rollback(self, checkpoint: ContextCheckpoint) -> None:
        """Forget every slot defined after *checkpoint* was taken."""
        del self._names[checkpoint.slot_count :]
        del self._values[checkpoint.slot_count :]
        self._bindings = dict(checkpoint.bindings)
