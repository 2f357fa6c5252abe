"""Thread-safe selector state with atomic snapshot swaps."""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class SelectorPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class SelectionSnapshot:
    """Everything a reader needs, published as one immutable object.

    Readers take ``state.snapshot`` once and work with that object; writers
    replace it wholesale, so a half-updated selection is never observable.
    """
    phase: SelectorPhase = SelectorPhase.UNINITIALIZED
    engine_id: Any = None
    engine: Any = None
    failures: dict = field(default_factory=dict)

    @property
    def is_ready(self) -> bool:
        return self.engine is not None


class SelectionState:
    """Holds the current SelectionSnapshot. Writes are short and locked."""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = SelectionSnapshot()

    @property
    def snapshot(self) -> SelectionSnapshot:
        return self._snapshot

    def begin_initializing(self) -> SelectionSnapshot:
        """Enter INITIALIZING, keeping any current engine serving meanwhile."""
        with self._lock:
            previous = self._snapshot
            self._snapshot = SelectionSnapshot(
                phase=SelectorPhase.INITIALIZING,
                engine_id=previous.engine_id,
                engine=previous.engine,
            )
            return previous

    def mark_ready(self, engine_id, engine, failures: Optional[dict] = None) -> SelectionSnapshot:
        """Publish a new current engine. Returns the snapshot it replaced."""
        with self._lock:
            previous = self._snapshot
            self._snapshot = SelectionSnapshot(
                phase=SelectorPhase.READY,
                engine_id=engine_id,
                engine=engine,
                failures=dict(failures or {}),
            )
            return previous

    def mark_failed(self, failures: dict) -> SelectionSnapshot:
        with self._lock:
            previous = self._snapshot
            self._snapshot = SelectionSnapshot(phase=SelectorPhase.FAILED, failures=dict(failures))
            return previous

    def reset(self) -> None:
        with self._lock:
            self._snapshot = SelectionSnapshot()
        logger.info("Selector state reset: no current engine.")
