"""
Installation for Site Updater.

Two phases: every INSTALL/UPDATE is downloaded and verified into the staging
area first, then each verified file is renamed over its live copy and each
UNINSTALL is deleted. The local index is written once, after every commit in
the batch was attempted.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..core.paths import get_managed_path, get_staging_dir, get_staging_path
from ..core.platforms import current_platform, is_windows
from ..core.progress import ProgressTracker
from ..errors import AuthError, CommitIOError
from ..index.collection import FileCollection
from ..index.records import Action, FileRecord
from ..index.repository import RepositoryIndex
from .downloader import DownloadJob, DownloadReport

logger = logging.getLogger(__name__)

INSTALLING = (Action.INSTALL, Action.UPDATE)


@dataclass
class InstallReport:
    """What one apply pass did."""
    installed: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and not self.cancelled


class Installer:
    """
    Applies planned INSTALL, UPDATE and UNINSTALL actions to the live tree.

    Args:
        collection: Collection whose records carry the actions
        index: What the sites publish (download references and checksums)
        root: Installation root
        downloader: Downloader for phase one
        store: IndexStore the collection is saved to after commit
        ui: User-interaction collaborator
        platform: Platform tag (decides whether execute bits are set)
    """

    def __init__(
        self,
        collection: FileCollection,
        index: RepositoryIndex,
        root: Path,
        downloader,
        store,
        ui,
        platform: Optional[str] = None,
    ):
        self.collection = collection
        self.index = index
        self.root = root
        self.downloader = downloader
        self.store = store
        self.ui = ui
        self.platform = platform or current_platform()

    def _job_for(self, record: FileRecord) -> Optional[DownloadJob]:
        entry = self.index.current_entry(record.filename, record.update_site)
        if entry is None or entry.latest is None:
            return None
        site = self.collection.get_site(entry.site)
        if site is None:
            return None
        return DownloadJob(
            job_id=record.filename,
            reference=site.file_url(record.filename, entry.latest.timestamp),
            size=entry.filesize,
            destination=get_staging_path(self.root, record.filename),
            checksum=entry.latest.checksum,
        )

    def stage(self, records: List[FileRecord], progress: Optional[ProgressTracker] = None) -> DownloadReport:
        """
        Phase one: download every INSTALL/UPDATE into the staging area.

        Records no site currently publishes get no job, so they show up as
        missing from the report and are not committed.

        Raises:
            AuthError: if a site refuses access
        """
        jobs = []
        for record in records:
            if record.action not in INSTALLING:
                continue
            try:
                job = self._job_for(record)
            except ValueError as e:
                logger.warning("Not staging %s: %s", record.filename, e)
                continue
            if job is None:
                logger.debug("No download source for %s", record.filename)
                continue
            jobs.append(job)
        if jobs:
            self.ui.info(f"Downloading {len(jobs)} file(s)...")
        return self.downloader.download_many(jobs, progress)

    def _live_path(self, record: FileRecord) -> Path:
        try:
            return get_managed_path(self.root, record.filename)
        except ValueError as e:
            raise CommitIOError(record.filename, str(e)) from e

    def _commit_install(self, record: FileRecord, staged: Path, checksum: str):
        live = self._live_path(record)
        try:
            live.parent.mkdir(parents=True, exist_ok=True)
            if record.executable and not is_windows(self.platform):
                os.chmod(staged, 0o755)
            os.replace(staged, live)
        except OSError as e:
            raise CommitIOError(record.filename, f"could not move into place: {e}") from e

        record.local_checksum = checksum
        record.local_timestamp = next(
            (v.timestamp for v in record.versions if v.checksum == checksum), 0
        )

    def _commit_uninstall(self, record: FileRecord):
        live = self._live_path(record)
        try:
            live.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CommitIOError(record.filename, f"could not delete: {e}") from e

        record.local_checksum = None
        record.local_timestamp = 0
        if record.update_site is None and not record.versions:
            # Local-only files leave nothing worth remembering
            self.collection.remove(record.filename)

    def commit(
        self,
        records: List[FileRecord],
        download_report: DownloadReport,
        progress: Optional[ProgressTracker] = None,
    ) -> InstallReport:
        """
        Phase two: move verified files into place and delete uninstalled ones.

        Each file is committed on its own; a failure is reported and the
        batch carries on. Cancellation is checked before every commit and
        leaves already-committed files in place.
        """
        report = InstallReport(cancelled=download_report.cancelled)

        for record in records:
            if record.action not in INSTALLING and record.action != Action.UNINSTALL:
                continue

            if progress and progress.cancelled:
                report.cancelled = True
                report.skipped.append(record.filename)
                continue

            try:
                self._live_path(record)
                if record.action == Action.UNINSTALL:
                    self._commit_uninstall(record)
                    report.removed.append(record.filename)
                    self.ui.info(f"Deleted {record.filename}")
                else:
                    result = download_report.result(record.filename)
                    if result is None:
                        report.failed[record.filename] = "not published by any update site"
                        self.ui.warn(f"Not installing {record.filename}: not published by any update site")
                        continue
                    if result.cancelled:
                        report.skipped.append(record.filename)
                        continue
                    if not result.success:
                        report.failed[record.filename] = result.error.reason if result.error else "download failed"
                        continue
                    self._commit_install(record, result.destination, result.checksum)
                    report.installed.append(record.filename)
                    self.ui.info(f"Installed {record.filename}")
            except CommitIOError as e:
                report.failed[record.filename] = e.reason
                self.ui.warn(f"Failed to commit {record.filename}: {e.reason}")
            finally:
                record.action = Action.NONE

        return report

    def apply(self, records: List[FileRecord], progress: Optional[ProgressTracker] = None) -> InstallReport:
        """
        Stage, commit, then write the local index.

        Raises:
            AuthError: if a site refuses a download (nothing is committed)
            OSError: if the local index cannot be written
        """
        self.clean_staging()
        try:
            download_report = self.stage(records, progress)
        except AuthError:
            self.clean_staging()
            raise

        report = self.commit(records, download_report, progress)
        self.store.save(self.collection)
        self.clean_staging()
        return report

    def clean_staging(self):
        """Remove what an earlier, interrupted run left in the staging area."""
        staging = get_staging_dir(self.root)
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)
            logger.debug("Cleaned %s", staging)
