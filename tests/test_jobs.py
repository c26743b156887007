"""Unit tests for the render queue and quote list."""

import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes.design import new_design, update_layer
from vidquotes.jobs import QuoteList, RenderQueue


def design_with_text(text):
    return update_layer(new_design(), "1", text=text)


class TestRenderQueue:

    def test_add_snapshots_design(self):
        queue = RenderQueue()
        d = design_with_text("Stay hungry")
        job = queue.add(d)
        d["text_layers"][0]["text"] = "mutated"
        assert job["status"] == "pending"
        assert job["name"] == "Stay hungry"
        assert job["design"]["text_layers"][0]["text"] == "Stay hungry"

    def test_pending_filter(self):
        queue = RenderQueue()
        a = queue.add(new_design())
        b = queue.add(new_design())
        queue.set_status(a["id"], "error")
        assert [j["id"] for j in queue.pending()] == [b["id"]]

    def test_remove_and_clear(self):
        queue = RenderQueue()
        a = queue.add(new_design())
        queue.add(new_design())
        assert queue.remove(a["id"])
        assert not queue.remove(a["id"])
        assert len(queue) == 1
        queue.clear()
        assert len(queue) == 0

    def test_unknown_status(self):
        queue = RenderQueue()
        job = queue.add(new_design())
        with pytest.raises(ValueError):
            queue.set_status(job["id"], "finished")


class TestQuoteList:

    def test_remove_matching_trims_and_removes_once(self):
        quotes = QuoteList(["  Be kind ", "Be kind", "Other"])
        assert quotes.remove_matching("Be kind  ")
        assert quotes.quotes == ["Be kind", "Other"]

    def test_remove_matching_no_match(self):
        quotes = QuoteList(["a"])
        assert not quotes.remove_matching("b")
        assert not quotes.remove_matching(None)
        assert quotes.quotes == ["a"]

    def test_remove_for_design_uses_first_non_empty_layer(self):
        quotes = QuoteList(["Hello"])
        assert quotes.remove_for_design(design_with_text("Hello"))
        assert len(quotes) == 0

    def test_get(self):
        quotes = QuoteList()
        assert quotes.extend(["a", "b"]) == 2
        assert quotes.first() == "a"
        assert quotes.get(5) is None
