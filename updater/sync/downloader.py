"""
File downloader for Site Updater.

Handles parallel, checksum-verified downloads into the staging area.
Uses asyncio + aiohttp for efficient concurrent downloads.
"""

import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import aiohttp

from ..core.constants import LARGE_FILE_THRESHOLD, PART_SUFFIX
from ..core.files import new_hasher
from ..core.progress import ProgressTracker
from ..errors import AuthError, ChecksumMismatch, FileError, TransferFailed

logger = logging.getLogger(__name__)

# Concurrency cap while any file in the batch is large
LARGE_FILE_WORKERS = 2


@dataclass(frozen=True)
class DownloadJob:
    """One file to fetch into the staging area."""
    job_id: str
    reference: str
    size: int
    destination: Path
    checksum: str

    @property
    def part_path(self) -> Path:
        return self.destination.with_name(self.destination.name + PART_SUFFIX)


@dataclass(frozen=True)
class DownloadResult:
    """Result of a single download. The only thing workers hand back."""
    job_id: str
    success: bool
    destination: Path
    checksum: Optional[str] = None
    bytes_downloaded: int = 0
    attempts: int = 0
    error: Optional[FileError] = None
    cancelled: bool = False


@dataclass(frozen=True)
class DownloadReport:
    """Results of a batch, in job order."""
    results: Tuple[DownloadResult, ...] = ()
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.cancelled and all(r.success for r in self.results)

    @property
    def failed(self) -> List[str]:
        return [r.job_id for r in self.results if not r.success and not r.cancelled]

    @property
    def succeeded(self) -> List[str]:
        return [r.job_id for r in self.results if r.success]

    def result(self, job_id: str) -> Optional[DownloadResult]:
        for r in self.results:
            if r.job_id == job_id:
                return r
        return None


class Downloader:
    """
    Async downloader with progress tracking.

    Each job streams into <destination>.part, is hashed on the way, and is
    renamed to its destination only when the checksum matches. A checksum
    mismatch fails the job at once; transfer errors are retried.
    """

    RETRY_DELAY = 0.5

    def __init__(
        self,
        transport,
        ui=None,
        max_workers: int = 8,
        max_retries: int = 3,
    ):
        """
        Initialize the downloader.

        Args:
            transport: Provides session() and async fetch(session, reference)
            ui: User-interaction collaborator for per-file failure lines
            max_workers: Maximum concurrent downloads
            max_retries: Attempts per file before giving up
        """
        self.transport = transport
        self.ui = ui
        self.max_workers = max(1, max_workers)
        self.max_retries = max(1, max_retries)
        self.retry_delay = self.RETRY_DELAY

    def _discard(self, path: Path):
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug("Could not remove %s: %s", path, e)

    async def _fetch_to_staging(
        self,
        session,
        job: DownloadJob,
        attempt: int,
        progress: Optional[ProgressTracker],
    ) -> DownloadResult:
        """Stream one job into its .part file, verify, and move it into place."""
        part = job.part_path
        part.parent.mkdir(parents=True, exist_ok=True)

        hasher = new_hasher()
        downloaded_bytes = 0
        with open(part, "wb") as f:
            async for chunk in self.transport.fetch(session, job.reference):
                f.write(chunk)
                hasher.update(chunk)
                downloaded_bytes += len(chunk)
                if progress:
                    progress.update(job.job_id, downloaded_bytes, job.size)

        actual = hasher.hexdigest()
        if actual != job.checksum:
            raise ChecksumMismatch(job.job_id, job.checksum, actual)

        os.replace(part, job.destination)
        return DownloadResult(
            job_id=job.job_id,
            success=True,
            destination=job.destination,
            checksum=actual,
            bytes_downloaded=downloaded_bytes,
            attempts=attempt,
        )

    async def _download_job(
        self,
        session,
        job: DownloadJob,
        semaphore: asyncio.Semaphore,
        progress: Optional[ProgressTracker] = None,
    ) -> DownloadResult:
        """Download a single file with retries (async)."""
        async with semaphore:
            if progress and progress.cancelled:
                return DownloadResult(job.job_id, False, job.destination, cancelled=True)

            last_error = None
            for attempt in range(1, self.max_retries + 1):
                try:
                    return await self._fetch_to_staging(session, job, attempt, progress)

                except ChecksumMismatch as e:
                    self._discard(job.part_path)
                    return DownloadResult(job.job_id, False, job.destination, attempts=attempt, error=e)

                except (AuthError, asyncio.CancelledError):
                    self._discard(job.part_path)
                    raise

                except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                    self._discard(job.part_path)
                    last_error = e
                    logger.debug("Attempt %d/%d for %s failed: %s", attempt, self.max_retries, job.job_id, e)
                    if attempt < self.max_retries:
                        await asyncio.sleep(self.retry_delay * attempt)

            reason = f"failed after {self.max_retries} attempts: {last_error or 'unknown error'}"
            return DownloadResult(
                job.job_id, False, job.destination,
                attempts=self.max_retries,
                error=TransferFailed(job.job_id, reason),
            )

    def _report_failure(self, result: DownloadResult):
        if self.ui and result.error is not None:
            self.ui.warn(f"Could not download {result.job_id}: {result.error.reason}")

    async def _download_many_async(
        self,
        jobs: List[DownloadJob],
        progress: ProgressTracker,
    ) -> DownloadReport:
        """Internal async implementation of download_many."""
        results: Dict[str, DownloadResult] = {}
        cancelled = False
        auth_error = None

        large_files = [j for j in jobs if j.size > LARGE_FILE_THRESHOLD]
        if large_files:
            effective_workers = min(self.max_workers, LARGE_FILE_WORKERS)
        else:
            effective_workers = self.max_workers

        semaphore = asyncio.Semaphore(effective_workers)

        async with self.transport.session(limit=effective_workers) as session:
            pending = {
                asyncio.create_task(
                    self._download_job(session, job, semaphore, progress),
                    name=job.job_id,
                ): job
                for job in jobs
            }

            try:
                while pending and auth_error is None:
                    done, _ = await asyncio.wait(
                        pending.keys(),
                        timeout=0.1,
                        return_when=asyncio.FIRST_COMPLETED,
                    )

                    for async_task in done:
                        job = pending.pop(async_task)

                        try:
                            result = async_task.result()
                        except asyncio.CancelledError:
                            continue
                        except AuthError as e:
                            auth_error = e
                            break
                        except Exception as e:
                            logger.debug("Download of %s crashed", job.job_id, exc_info=True)
                            result = DownloadResult(
                                job.job_id, False, job.destination,
                                error=TransferFailed(job.job_id, str(e)),
                            )

                        results[job.job_id] = result
                        progress.job_completed(job.job_id)
                        if not result.success:
                            self._report_failure(result)

            except asyncio.CancelledError:
                cancelled = True

            finally:
                # Work is left pending only after a refused login or a hard cancel
                for t in pending:
                    t.cancel()
                # Let cancelled jobs remove their .part files
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)

        if auth_error is not None:
            raise auth_error
        cancelled = cancelled or progress.cancelled

        ordered = tuple(
            results.get(job.job_id) or DownloadResult(job.job_id, False, job.destination, cancelled=True)
            for job in jobs
        )
        return DownloadReport(results=ordered, cancelled=cancelled)

    def download_many(
        self,
        jobs: List[DownloadJob],
        progress: Optional[ProgressTracker] = None,
    ) -> DownloadReport:
        """
        Download multiple files concurrently using asyncio.

        Ctrl+C cancels cooperatively: jobs not yet started report cancelled,
        downloads already streaming run to completion, and files already
        staged stay staged. A second Ctrl+C abandons the streaming downloads
        too.

        Raises:
            AuthError: if a site refuses access; the whole batch is abandoned
        """
        if not jobs:
            return DownloadReport()

        progress = progress or ProgressTracker()
        original_handler = None

        def handle_interrupt(signum, frame):
            if progress.cancelled:
                raise KeyboardInterrupt
            progress.cancel()
            if self.ui:
                self.ui.info("\n  Cancelling downloads...")

        try:
            original_handler = signal.signal(signal.SIGINT, handle_interrupt)
        except ValueError:
            # Not the main thread; Ctrl+C is left to the default handler
            pass

        try:
            return asyncio.run(self._download_many_async(jobs, progress))
        except KeyboardInterrupt:
            return DownloadReport(
                results=tuple(
                    DownloadResult(job.job_id, False, job.destination, cancelled=True)
                    for job in jobs
                ),
                cancelled=True,
            )
        finally:
            if original_handler is not None:
                signal.signal(signal.SIGINT, original_handler)
