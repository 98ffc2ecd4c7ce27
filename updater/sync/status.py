"""
Status calculation for Site Updater.

Determines each file's synchronization status by comparing the file on disk
against the checksum history the indexes remember.
"""

import logging
from pathlib import Path
from typing import List, Optional

from ..core.files import compute_checksum
from ..index.collection import FileCollection
from ..index.records import FileRecord, Status
from ..index.repository import RemoteEntry, RepositoryIndex

logger = logging.getLogger(__name__)


def resolve_status(
    record: FileRecord,
    remote_entry: Optional[RemoteEntry],
    local_checksum: Optional[str],
) -> Status:
    """
    Decide a file's status. Pure: same inputs, same answer.

    Args:
        record: The file's record (checksum history, last installed checksum)
        remote_entry: What the owning site says about the file, current or not
                      (None if no site has ever published it)
        local_checksum: Checksum of the file on disk (None if absent)

    Returns:
        Exactly one Status
    """
    published = remote_entry is not None and remote_entry.current

    if local_checksum is None:
        if published:
            return Status.NOT_INSTALLED if record.local_checksum else Status.NEW
        return Status.OBSOLETE_UNINSTALLED

    if remote_entry is None and not record.versions:
        return Status.LOCAL_ONLY

    known = record.has_version(local_checksum) or (
        remote_entry is not None and remote_entry.has_version(local_checksum)
    )

    if published:
        if local_checksum == remote_entry.latest.checksum:
            return Status.INSTALLED
        return Status.UPDATEABLE if known else Status.MODIFIED

    return Status.OBSOLETE if known else Status.OBSOLETE_MODIFIED


def remote_entry_for(record: FileRecord, index: RepositoryIndex) -> Optional[RemoteEntry]:
    """
    The entry that speaks for a record.

    The currently publishing entry if any; otherwise the owning site's stale
    entry, or the last configured site's.
    """
    entry = index.current_entry(record.filename, record.update_site)
    if entry is not None:
        return entry
    entries = index.entries(record.filename)
    if record.update_site in entries:
        return entries[record.update_site]
    for site in reversed(index.site_order):
        if site in entries:
            return entries[site]
    return None


class StatusResolver:
    """
    Assigns a status to every record of a collection.

    Args:
        root: Installation root the filenames are relative to
        ui: User-interaction collaborator (for warnings)
    """

    def __init__(self, root: Path, ui=None):
        self.root = root
        self.ui = ui

    def local_checksum(self, record: FileRecord) -> Optional[str]:
        """
        Hash the file on disk.

        Raises:
            OSError: if the file exists but cannot be read
        """
        path = self.root / record.filename
        if not path.is_file():
            return None
        return compute_checksum(path)

    def resolve(self, collection: FileCollection, index: RepositoryIndex) -> List[str]:
        """
        Recompute every record's status.

        Returns:
            Warnings for files that could not be hashed (those are MODIFIED)
        """
        warnings = []
        for record in collection:
            try:
                local = self.local_checksum(record)
            except OSError as e:
                record.status = Status.MODIFIED
                warning = f"Could not read {record.filename}: {e}"
                warnings.append(warning)
                if self.ui:
                    self.ui.warn(warning)
                continue
            record.status = resolve_status(record, remote_entry_for(record, index), local)
            logger.debug("%s: %s", record.filename, record.status)
        return warnings
