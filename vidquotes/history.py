"""
Vid Quotes - Undo/Redo History
Bounded list of design snapshots with a cursor.
"""

import threading
from typing import List, Optional

HISTORY_CAPACITY = 50


class DesignHistory:
    """
    Fixed-capacity undo/redo stack.

    push() drops every entry after the cursor, appends, and evicts the oldest
    entry once more than ``capacity`` are held.
    """

    def __init__(self, initial: dict, capacity: int = HISTORY_CAPACITY):
        self._capacity = max(1, capacity)
        self._entries: List[dict] = [initial]
        self._index = 0
        self._lock = threading.Lock()

    def push(self, design: dict):
        with self._lock:
            del self._entries[self._index + 1:]
            self._entries.append(design)
            if len(self._entries) > self._capacity:
                self._entries.pop(0)
            self._index = len(self._entries) - 1

    def undo(self) -> Optional[dict]:
        """Step back one entry. Returns the design to restore, or None at the start."""
        with self._lock:
            if self._index == 0:
                return None
            self._index -= 1
            return self._entries[self._index]

    def redo(self) -> Optional[dict]:
        with self._lock:
            if self._index >= len(self._entries) - 1:
                return None
            self._index += 1
            return self._entries[self._index]

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    @property
    def current(self) -> dict:
        return self._entries[self._index]

    @property
    def size(self):
        with self._lock:
            return len(self._entries)
