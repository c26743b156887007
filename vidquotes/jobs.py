"""
Vid Quotes - Render Queue & Quote List
Plain, lock-protected containers shared by the UI thread and the batch worker.
"""

import threading
import logging
from typing import List, Optional

from vidquotes.design import job_name, new_id, primary_text, snapshot_design

logger = logging.getLogger(__name__)

JOB_STATUSES = ("pending", "processing", "done", "error")


def new_job(design: dict) -> dict:
    """Freeze the live design into a pending render job."""
    snapshot = snapshot_design(design)
    return {
        "id": new_id(),
        "name": job_name(snapshot),
        "design": snapshot,
        "status": "pending",
    }


class RenderQueue:
    """Ordered render jobs. Jobs leave the queue on success, stay with status=error on failure."""

    def __init__(self):
        self._jobs: List[dict] = []
        self._lock = threading.Lock()

    def add(self, design: dict) -> dict:
        job = new_job(design)
        with self._lock:
            self._jobs.append(job)
        logger.info("Queued job '%s' (%s)", job["name"], job["id"])
        return job

    def remove(self, job_id: str) -> bool:
        with self._lock:
            before = len(self._jobs)
            self._jobs = [j for j in self._jobs if j["id"] != job_id]
            return len(self._jobs) != before

    def clear(self):
        with self._lock:
            self._jobs = []

    def set_status(self, job_id: str, status: str):
        if status not in JOB_STATUSES:
            raise ValueError(f"Unknown job status: {status}")
        with self._lock:
            for job in self._jobs:
                if job["id"] == job_id:
                    job["status"] = status

    def get(self, job_id: str) -> Optional[dict]:
        with self._lock:
            for job in self._jobs:
                if job["id"] == job_id:
                    return job
        return None

    def pending(self) -> List[dict]:
        with self._lock:
            return [j for j in self._jobs if j["status"] == "pending"]

    @property
    def jobs(self) -> List[dict]:
        with self._lock:
            return list(self._jobs)

    def __len__(self):
        with self._lock:
            return len(self._jobs)


class QuoteList:
    """Pending quotes waiting to be rendered, in load order."""

    def __init__(self, quotes: Optional[List[str]] = None):
        self._quotes: List[str] = list(quotes or [])
        self._lock = threading.Lock()

    def extend(self, quotes: List[str]) -> int:
        with self._lock:
            self._quotes.extend(quotes)
            return len(self._quotes)

    def get(self, index: int) -> Optional[str]:
        with self._lock:
            if 0 <= index < len(self._quotes):
                return self._quotes[index]
        return None

    def first(self) -> Optional[str]:
        return self.get(0)

    def remove_matching(self, text: Optional[str]) -> bool:
        """Remove the first quote equal to ``text`` once both are trimmed."""
        if not text:
            return False
        target = text.strip()
        with self._lock:
            for i, quote in enumerate(self._quotes):
                if quote.strip() == target:
                    del self._quotes[i]
                    return True
        return False

    def remove_for_design(self, design: dict) -> bool:
        return self.remove_matching(primary_text(design))

    def clear(self):
        with self._lock:
            self._quotes = []

    @property
    def quotes(self) -> List[str]:
        with self._lock:
            return list(self._quotes)

    def __len__(self):
        with self._lock:
            return len(self._quotes)
