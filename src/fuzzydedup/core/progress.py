"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/progress.py
Checkpointed progress of a long-running, unit-by-unit stage.

The checkpoint is the number of units whose outcome is already durable. A stage must
record a unit's outcome first and advance afterwards, so that after a crash the
resumed run starts at the first unit that was not committed.
"""

import logging

from fuzzydedup.core.errors import StateCorruption
from fuzzydedup.core.interfaces import DurableStore

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Durable unit counter stored under `name` in a DurableStore."""

    def __init__(self, store: DurableStore, name: str):
        self.store = store
        self.name = name

    def load(self) -> int:
        """Number of units completed by a previous, interrupted invocation (0 if none)."""
        raw = self.store.get(self.name)
        if raw is None:
            return 0
        text = raw.strip()
        if not text.isdigit():
            raise StateCorruption(f"Checkpoint '{self.name}' is not a unit count: {raw!r}",
                                  path=self.name)
        value = int(text)
        if value:
            logger.info(f"Resuming '{self.name}' after {value} completed units")
        return value

    def is_started(self) -> bool:
        """True once the stage has recorded a checkpoint, even a zero one."""
        return self.store.get(self.name) is not None

    def advance(self, units_done: int) -> None:
        """Durably record that the first `units_done` units are committed."""
        if units_done < 0:
            raise ValueError("Checkpoint cannot be negative")
        self.store.set(self.name, str(units_done))

    def clear(self) -> None:
        """Forget the checkpoint once the stage has fully completed."""
        self.store.clear(self.name)
