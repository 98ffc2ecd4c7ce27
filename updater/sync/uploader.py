"""
Upload for Site Updater.

Pushes file content to one update site under a login session, then
publishes that site's updated index. Local records change only once the
index is published.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..core.constants import INDEX_FILENAME
from ..core.files import checksum_bytes, file_timestamp
from ..core.formatting import now_timestamp
from ..core.progress import ProgressTracker
from ..errors import FileError, MultiSiteUploadError, TransferFailed, UpdaterError
from ..index.collection import FileCollection
from ..index.records import Action, FileRecord, UpdateSite, Version
from ..index.repository import RemoteEntry, RepositoryIndex
from ..index.store import site_document

logger = logging.getLogger(__name__)


@dataclass
class UploadReport:
    """What one upload batch did."""
    site: Optional[str] = None
    uploaded: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    published: bool = False
    publish_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.failed


class Uploader:
    """
    Publishes UPLOAD and REMOVE actions to one update site.

    Args:
        collection: Collection whose records carry the actions
        index: What the sites published when the batch was planned
        transport: Provides needs_credentials(), login() and push()
        ui: User-interaction collaborator (credentials, messages)
        root: Installation root
        store: IndexStore the collection is saved to afterwards
    """

    def __init__(
        self,
        collection: FileCollection,
        index: RepositoryIndex,
        transport,
        ui,
        root: Path,
        store,
    ):
        self.collection = collection
        self.index = index
        self.transport = transport
        self.ui = ui
        self.root = root
        self.store = store

    def _batch_site(self, records: List[FileRecord]) -> str:
        """
        The one site every record of the batch belongs to.

        Raises:
            UpdaterError: if a record is not staged for upload or has no site
            MultiSiteUploadError: if records belong to different sites
        """
        first: Optional[Tuple[str, str]] = None
        for record in records:
            if record.action not in (Action.UPLOAD, Action.REMOVE):
                raise UpdaterError(f"{record.filename} is not staged for upload ({record.action})")
            if record.update_site is None:
                raise UpdaterError(f"{record.filename} has no update site")
            if first is None:
                first = (record.filename, record.update_site)
            elif record.update_site != first[1]:
                raise MultiSiteUploadError(first, (record.filename, record.update_site))
        return first[1]

    def _upload_one(self, session, site_name: str, record: FileRecord) -> RemoteEntry:
        """
        Push one file's content.

        Raises:
            TransferFailed: if the file cannot be read or pushed
            AuthError: if the site refuses the write
        """
        path = self.root / record.filename
        try:
            data = path.read_bytes()
            timestamp = file_timestamp(path)
        except OSError as e:
            raise TransferFailed(record.filename, f"could not read: {e}") from e

        previous = self.index.entry(record.filename, site_name)
        versions = previous.versions if previous else ()
        if versions and timestamp <= versions[-1].timestamp:
            timestamp = max(now_timestamp(), versions[-1].timestamp + 1)

        version = Version(checksum=checksum_bytes(data), timestamp=timestamp)
        entry = RemoteEntry(
            filename=record.filename,
            site=site_name,
            versions=tuple(v for v in versions if v.checksum != version.checksum) + (version,),
            current=True,
            platforms=frozenset(record.platforms),
            executable=record.executable,
            dependencies=tuple(record.dependencies),
            filesize=len(data),
        )
        metadata = {
            "checksum": version.checksum,
            "timestamp": version.timestamp,
            "filesize": entry.filesize,
            "dependencies": json.dumps([d.to_dict() for d in entry.dependencies]),
        }
        self.transport.push(session, f"{record.filename}-{version.timestamp}", data, metadata)
        return entry

    def _remove_one(self, site_name: str, record: FileRecord) -> RemoteEntry:
        previous = self.index.entry(record.filename, site_name)
        if previous is None or not previous.current:
            raise TransferFailed(record.filename, f"not published on {site_name}")
        return replace(previous, current=False)

    def _publish(self, session, site_name: str, changes: Dict[str, RemoteEntry]):
        """Push the site's db.json with the batch's changes folded in."""
        entries = {entry.filename: entry for entry in self.index.site_entries(site_name)}
        entries.update(changes)
        document = site_document(entries.values())
        self.transport.push(
            session,
            INDEX_FILENAME,
            json.dumps(document, indent=2).encode("utf-8"),
            {"files": len(document["files"])},
        )

    def _update_records(self, records: List[FileRecord], changes: Dict[str, RemoteEntry]):
        for record in records:
            entry = changes.get(record.filename)
            if entry is None:
                continue
            if entry.current:
                version = entry.latest
                record.add_version(version)
                record.local_checksum = version.checksum
                record.local_timestamp = version.timestamp
                record.filesize = entry.filesize
            record.update_site = entry.site

    def upload(self, records: List[FileRecord], progress: Optional[ProgressTracker] = None) -> UploadReport:
        """
        Upload a batch.

        A file that fails does not undo files pushed before it. If the site
        index cannot be published the whole batch counts as failed and no
        local record changes.

        Raises:
            MultiSiteUploadError: if the records belong to different sites
            AuthError: if login is refused
            UpdaterError: if a record is not staged or its site is unknown
        """
        report = UploadReport()
        if not records:
            return report

        site_name = self._batch_site(records)
        site = self.collection.get_site(site_name)
        if site is None:
            raise UpdaterError(f"Unknown update site '{site_name}'")
        report.site = site_name

        try:
            changes = self._push_batch(site, records, report, progress)
        finally:
            for record in records:
                record.action = Action.NONE
        if report.publish_error:
            return report

        report.published = bool(changes)
        self._update_records(records, changes)
        for name, entry in changes.items():
            if entry.current:
                report.uploaded.append(name)
            else:
                report.removed.append(name)
        if changes:
            self.store.save(self.collection)
        logger.debug("Uploaded %d, removed %d, failed %d", len(report.uploaded), len(report.removed), len(report.failed))
        return report

    def _push_batch(
        self,
        site: UpdateSite,
        records: List[FileRecord],
        report: UploadReport,
        progress: Optional[ProgressTracker],
    ) -> Dict[str, RemoteEntry]:
        """Log in, push every file, then publish the site index."""
        site_name = site.name
        credentials = None
        if self.transport.needs_credentials(site):
            credentials = self.ui.get_credentials(site)
        session = self.transport.login(site, credentials)
        self.ui.info(f"Uploading to {site.long_name}")

        changes: Dict[str, RemoteEntry] = {}
        try:
            for record in records:
                try:
                    if record.action == Action.UPLOAD:
                        changes[record.filename] = self._upload_one(session, site_name, record)
                    else:
                        changes[record.filename] = self._remove_one(site_name, record)
                except FileError as e:
                    report.failed[record.filename] = e.reason
                    self.ui.warn(f"Could not upload {record.filename}: {e.reason}")
                finally:
                    if progress:
                        progress.job_completed(record.filename)

            if changes:
                try:
                    self._publish(session, site_name, changes)
                except TransferFailed as e:
                    self.ui.warn(f"Could not publish index of {site_name}: {e.reason}")
                    report.publish_error = e.reason
                    for name in changes:
                        report.failed[name] = f"index not published: {e.reason}"
        finally:
            session.close()
        return changes
