"""
Transfer progress display for Site Updater.

Reports byte progress for long transfers and a line per completed file.
"""

import shutil
import time
from typing import Dict

from ..core.progress import ProgressTracker


class TransferProgress(ProgressTracker):
    """
    Progress tracker for a batch of downloads or uploads.

    Byte progress for a job is only reported once it has been running for a
    while, and then at most every few seconds, so small files stay quiet.
    """

    PROGRESS_INTERVAL = 1.5
    TIME_THRESHOLD = 2.0

    def __init__(self, ui, total_jobs: int):
        super().__init__()
        self.ui = ui
        self.total_jobs = total_jobs
        self.completed_jobs = 0
        self.start_time = time.time()
        # {job_id: (started_at, last_reported_at)}
        self._timing: Dict[str, tuple] = {}

    def update(self, job_id: str, done: int, total: int):
        now = time.time()
        with self.lock:
            if self._closed:
                return
            started, last = self._timing.setdefault(job_id, (now, 0.0))
            if now - started < self.TIME_THRESHOLD or now - last < self.PROGRESS_INTERVAL:
                return
            self._timing[job_id] = (started, now)
        self.ui.report_progress(job_id, done, total)

    def job_completed(self, job_id: str):
        with self.lock:
            if self._closed:
                return
            self._timing.pop(job_id, None)
            self.completed_jobs += 1
            line = self._format_line(job_id)
        self.ui.info(line)

    def _format_line(self, item_name: str) -> str:
        term_width = shutil.get_terminal_size().columns
        pct = (self.completed_jobs / self.total_jobs * 100) if self.total_jobs > 0 else 0

        core = f"  {pct:5.1f}% ({self.completed_jobs}/{self.total_jobs})"

        remaining = term_width - len(core) - 5
        if remaining > 10:
            if len(item_name) > remaining:
                item_name = "..." + item_name[-(remaining - 3):]
            return f"{core}  {item_name}"
        return core
