"""
Vid Quotes - Batch Scheduler
Exports every pending render job, one after another, unattended.

The set of jobs is captured when the batch starts; adding or removing jobs while it
runs does not change what gets exported. Cancellation is cooperative and only
checked between jobs, so an in-flight capture always finishes.
"""

import re
import time
import threading
import logging
from typing import Callable, Optional

from vidquotes.jobs import QuoteList, RenderQueue

logger = logging.getLogger(__name__)

SETTLE_DELAY = 2.0
SUCCESS_COOLDOWN = 1.0
FAILURE_COOLDOWN = 2.0
MAX_SUFFIX_NAME = 50


def job_suffix(index: int, name: str) -> str:
    """Output-name suffix for the job at 0-based ``index``: '<n>-<sanitized name>'."""
    clean = re.sub(r"[^a-z0-9]", "_", name, flags=re.IGNORECASE)[:MAX_SUFFIX_NAME]
    return f"{index + 1}-{clean}"


class BatchScheduler:
    """
    Runs the queued jobs through a recorder.

    Args:
        render_queue: live queue; finished jobs are removed from it
        quotes: pending quotes; a finished job's primary text is removed from it
        apply_design: swaps the active design to a job's snapshot
        record: records the active design, given an output-name suffix
        restore_preview: called once the batch ends, however it ends
        sleep: delay function (injectable for tests)
        status_callback: receives human-readable progress lines
    """

    def __init__(self, render_queue: RenderQueue, quotes: QuoteList,
                 apply_design: Callable[[dict], None],
                 record: Callable[[str], str],
                 restore_preview: Callable[[], None],
                 sleep: Callable[[float], None] = time.sleep,
                 status_callback: Optional[Callable[[str], None]] = None):
        self.render_queue = render_queue
        self.quotes = quotes
        self._apply_design = apply_design
        self._record = record
        self._restore_preview = restore_preview
        self._sleep = sleep
        self.status_callback = status_callback
        self._stop_event = threading.Event()
        self.is_running = False

    def _status(self, text: str):
        logger.info(text)
        if self.status_callback:
            self.status_callback(text)

    def stop(self):
        """Stop after the current job."""
        self._stop_event.set()
        if self.is_running:
            self._status("Stopping after current job...")

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> dict:
        """
        Export every job that is pending right now. Blocks until done.

        Returns {"done": n, "failed": n, "total": n, "cancelled": bool}.
        """
        jobs = self.render_queue.pending()
        summary = {"done": 0, "failed": 0, "total": len(jobs), "cancelled": False}
        if not jobs:
            return summary

        self._stop_event.clear()
        self.is_running = True
        try:
            for i, job in enumerate(jobs):
                if self._stop_event.is_set():
                    break
                self._status(f"Processing {i + 1}/{len(jobs)}: {job['name']}")
                try:
                    self._apply_design(job["design"])
                    self._sleep(SETTLE_DELAY)
                    if self._stop_event.is_set():
                        break

                    self.render_queue.set_status(job["id"], "processing")
                    path = self._record(job_suffix(i, job["name"]))

                    self.render_queue.remove(job["id"])
                    self.quotes.remove_for_design(job["design"])
                    summary["done"] += 1
                    logger.info("Job '%s' done: %s", job["name"], path)
                    self._sleep(SUCCESS_COOLDOWN)
                except Exception as e:
                    logger.error("Batch job '%s' failed: %s", job["name"], e, exc_info=True)
                    self._status(f"Error on {job['name']}")
                    self.render_queue.set_status(job["id"], "error")
                    summary["failed"] += 1
                    self._sleep(FAILURE_COOLDOWN)
        finally:
            summary["cancelled"] = self._stop_event.is_set()
            self.is_running = False
            self._restore_preview()

        self._status(
            f"Batch {'stopped' if summary['cancelled'] else 'complete'}: "
            f"{summary['done']} done, {summary['failed']} failed"
        )
        return summary
