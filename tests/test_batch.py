"""Unit tests for the batch scheduler (no capture, no real delays)."""

import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes.batch import (
    FAILURE_COOLDOWN,
    SETTLE_DELAY,
    SUCCESS_COOLDOWN,
    BatchScheduler,
    job_suffix,
)
from vidquotes.design import new_design, update_layer
from vidquotes.errors import EncodeError
from vidquotes.jobs import QuoteList, RenderQueue


def design_with_text(text):
    return update_layer(new_design(), "1", text=text)


class Harness:
    """Collects everything the scheduler does."""

    def __init__(self, texts, fail_on=(), stop_after=None):
        self.queue = RenderQueue()
        self.quotes = QuoteList(list(texts))
        self.jobs = [self.queue.add(design_with_text(t)) for t in texts]
        self.applied = []
        self.recorded = []
        self.sleeps = []
        self.restored = 0
        self.statuses = []
        self._fail_on = set(fail_on)
        self._stop_after = stop_after
        self.scheduler = BatchScheduler(
            self.queue, self.quotes,
            apply_design=self.applied.append,
            record=self.record,
            restore_preview=self.restore,
            sleep=self.sleeps.append,
            status_callback=self.statuses.append,
        )

    def record(self, suffix):
        index = len(self.recorded)
        self.recorded.append(suffix)
        if self._stop_after is not None and index + 1 == self._stop_after:
            self.scheduler.stop()
        if index in self._fail_on:
            raise EncodeError("encoder died")
        return f"/out/quote-vid-{suffix}.mp4"

    def restore(self):
        self.restored += 1


class TestJobSuffix:

    def test_sanitizes_and_numbers(self):
        assert job_suffix(0, "Don't stop!") == "1-Don_t_stop_"

    def test_truncates(self):
        assert job_suffix(4, "x" * 80) == "5-" + "x" * 50


class TestBatchScheduler:

    def test_all_succeed(self):
        h = Harness(["One", "Two", "Three"])
        summary = h.scheduler.run()
        assert summary == {"done": 3, "failed": 0, "total": 3, "cancelled": False}
        assert h.recorded == ["1-One", "2-Two", "3-Three"]
        assert len(h.queue) == 0
        assert len(h.quotes) == 0
        assert h.restored == 1
        assert not h.scheduler.is_running

    def test_designs_applied_in_order(self):
        h = Harness(["One", "Two"])
        h.scheduler.run()
        assert [d["text_layers"][0]["text"] for d in h.applied] == ["One", "Two"]

    def test_delays(self):
        h = Harness(["One"])
        h.scheduler.run()
        assert h.sleeps == [SETTLE_DELAY, SUCCESS_COOLDOWN]

    def test_failed_job_stays_queued_with_error(self):
        h = Harness(["One", "Two", "Three"], fail_on={1})
        summary = h.scheduler.run()
        assert summary["done"] == 2
        assert summary["failed"] == 1
        remaining = h.queue.jobs
        assert [j["name"] for j in remaining] == ["Two"]
        assert remaining[0]["status"] == "error"
        assert h.quotes.quotes == ["Two"]
        assert FAILURE_COOLDOWN in h.sleeps

    def test_errored_jobs_are_not_retried(self):
        h = Harness(["One", "Two"], fail_on={0})
        h.scheduler.run()
        h.recorded.clear()
        summary = h.scheduler.run()
        assert summary["total"] == 0
        assert h.recorded == []

    def test_stop_finishes_current_job(self):
        h = Harness(["One", "Two", "Three"], stop_after=1)
        summary = h.scheduler.run()
        assert summary["cancelled"] is True
        assert summary["done"] == 1
        assert h.recorded == ["1-One"]
        assert [j["name"] for j in h.queue.jobs] == ["Two", "Three"]
        assert all(j["status"] == "pending" for j in h.queue.jobs)
        assert h.restored == 1

    def test_jobs_added_during_run_are_not_exported(self):
        h = Harness(["One"])
        original_record = h.record

        def record_and_enqueue(suffix):
            h.queue.add(design_with_text("Late"))
            return original_record(suffix)

        h.scheduler._record = record_and_enqueue
        summary = h.scheduler.run()
        assert summary["total"] == 1
        assert [j["name"] for j in h.queue.pending()] == ["Late"]

    def test_empty_queue(self):
        h = Harness([])
        assert h.scheduler.run() == {"done": 0, "failed": 0, "total": 0, "cancelled": False}
        assert h.restored == 0

    def test_status_lines(self):
        h = Harness(["One"])
        h.scheduler.run()
        assert h.statuses[0] == "Processing 1/1: One"
        assert h.statuses[-1].startswith("Batch complete")

    def test_restore_runs_even_if_apply_crashes_hard(self):
        h = Harness(["One"])

        def explode(design):
            raise KeyboardInterrupt

        h.scheduler._apply_design = explode
        with pytest.raises(KeyboardInterrupt):
            h.scheduler.run()
        assert h.restored == 1
        assert not h.scheduler.is_running
