"""
tree/history.py

Bounded undo/redo snapshot stacks.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional

from models import ForestState


class History:
    """Two snapshot stacks for semantic undo/redo.

    The undo stack holds at most *limit* snapshots; pushing beyond that
    evicts the oldest one.  Snapshots are ``ForestState`` objects, which
    the store never mutates, so they are stored as-is.
    """

    def __init__(self, limit: int = 250):
        self.limit = max(1, int(limit))
        self._past: Deque[ForestState] = deque(maxlen=self.limit)
        self._future: List[ForestState] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def __len__(self) -> int:
        return len(self._past)

    def record(self, snapshot: ForestState) -> None:
        """Record the state about to be replaced by a new mutation."""
        self._past.append(snapshot)
        self._future.clear()

    def undo(self, current: ForestState) -> Optional[ForestState]:
        """Pop the previous snapshot, parking *current* on the redo stack."""
        if not self._past:
            return None
        previous = self._past.pop()
        self._future.append(current)
        return previous

    def redo(self, current: ForestState) -> Optional[ForestState]:
        """Pop the next snapshot, parking *current* on the undo stack."""
        if not self._future:
            return None
        nxt = self._future.pop()
        self._past.append(current)
        return nxt

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()
