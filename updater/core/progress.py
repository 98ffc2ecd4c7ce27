"""
Base progress tracking for download and upload batches.
"""

import threading


class ProgressTracker:
    """Base class for thread-safe progress tracking with cooperative cancellation."""

    def __init__(self):
        self.lock = threading.Lock()
        self._closed = False
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self):
        """Signal cancellation. Work already committed is kept."""
        self._cancelled.set()

    def update(self, job_id: str, done: int, total: int):
        """Report bytes done for one job. Base tracker ignores byte counts."""

    def job_completed(self, job_id: str):
        """Mark one job as finished (successfully or not)."""

    def close(self):
        """Close the progress tracker."""
        with self.lock:
            self._closed = True
