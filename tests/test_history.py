"""Unit tests for the undo/redo history."""

import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes.history import HISTORY_CAPACITY, DesignHistory


def state(n):
    return {"n": n}


class TestDesignHistory:

    def test_initial_state(self):
        h = DesignHistory(state(0))
        assert h.current == state(0)
        assert not h.can_undo
        assert not h.can_redo
        assert h.undo() is None

    def test_undo_returns_previous(self):
        h = DesignHistory(state(0))
        h.push(state(1))
        h.push(state(2))
        assert h.undo() == state(1)
        assert h.undo() == state(0)
        assert h.undo() is None

    def test_redo(self):
        h = DesignHistory(state(0))
        h.push(state(1))
        h.undo()
        assert h.can_redo
        assert h.redo() == state(1)
        assert h.redo() is None

    def test_push_truncates_redo_branch(self):
        h = DesignHistory(state(0))
        h.push(state(1))
        h.push(state(2))
        h.undo()
        h.push(state(3))
        assert not h.can_redo
        assert h.size == 3
        assert h.undo() == state(1)

    def test_capacity(self):
        h = DesignHistory(state(0))
        for i in range(1, 80):
            h.push(state(i))
        assert h.size == HISTORY_CAPACITY
        assert h.current == state(79)
        steps = 0
        while h.undo() is not None:
            steps += 1
        assert steps == HISTORY_CAPACITY - 1
        assert h.current == state(80 - HISTORY_CAPACITY)
