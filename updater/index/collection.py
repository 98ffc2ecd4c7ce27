"""
File collection for Site Updater.

The collection owns every FileRecord and the configured update sites for one
installation. It is loaded once, changed in memory while planning, and written
back after a successful apply.
"""

from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from ..core.constants import PART_SUFFIX, STAGING_DIR, STATE_DIR
from ..core.files import iter_files
from ..core.formatting import name_sort_key, relative_posix
from .records import FileRecord, Status, UpdateSite
from .repository import RepositoryIndex

Predicate = Callable[[FileRecord], bool]


def is_status(status: Status) -> Predicate:
    """Filter matching one status."""
    return lambda record: record.status == status


def one_of(statuses: Iterable[Status]) -> Predicate:
    """Filter matching any of several statuses."""
    statuses = frozenset(statuses)
    return lambda record: record.status in statuses


def negate(predicate: Predicate) -> Predicate:
    return lambda record: not predicate(record)


def both(first: Predicate, second: Predicate) -> Predicate:
    return lambda record: first(record) and second(record)


class FileCollection:
    """
    All managed files of one installation, keyed by filename.

    Sites are kept in configuration order; a later site shadows an earlier
    one that publishes the same file.
    """

    def __init__(self, sites: Iterable[UpdateSite] = (), records: Iterable[FileRecord] = ()):
        self._sites: Dict[str, UpdateSite] = {}
        for site in sites:
            self.add_site(site)
        self._records: Dict[str, FileRecord] = {}
        for record in records:
            self.add(record)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, filename: str) -> bool:
        return filename in self._records

    def __iter__(self) -> Iterator[FileRecord]:
        for name in sorted(self._records, key=name_sort_key):
            yield self._records[name]

    def get(self, filename: str) -> Optional[FileRecord]:
        return self._records.get(filename)

    def add(self, record: FileRecord) -> FileRecord:
        """Add or replace a record."""
        self._records[record.filename] = record
        return record

    def remove(self, filename: str):
        self._records.pop(filename, None)

    def filter(self, predicate: Predicate) -> List[FileRecord]:
        return [record for record in self if predicate(record)]

    # ------------------------------------------------------------------
    # Update sites
    # ------------------------------------------------------------------

    @property
    def sites(self) -> List[UpdateSite]:
        return list(self._sites.values())

    def site_names(self) -> List[str]:
        return list(self._sites)

    def get_site(self, name: str) -> Optional[UpdateSite]:
        return self._sites.get(name)

    def add_site(self, site: UpdateSite):
        """Add a site, or update an existing one in place (keeps its order)."""
        self._sites[site.name] = site

    def uploadable_sites(self) -> List[UpdateSite]:
        return [site for site in self._sites.values() if site.is_uploadable]

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def merge_index(self, index: RepositoryIndex):
        """
        Fold the sites' published state into the local records.

        Newly published files get a record; every record learns the full
        checksum history the sites remember; metadata is refreshed from the
        entry currently publishing the file. A record keeps its owning site
        while that site still publishes it.
        """
        for filename in index.filenames():
            record = self._records.get(filename)
            entry = index.current_entry(filename, record.update_site if record else None)

            if record is None:
                # Withdrawn files are remembered too, so stale copies on disk show up as obsolete
                sites = index.entries(filename)
                owner = entry or next(sites[s] for s in reversed(index.site_order) if s in sites)
                record = self.add(FileRecord(filename=filename, update_site=owner.site))

            for version in index.known_versions(filename):
                record.add_version(version)

            if entry is None:
                continue
            record.update_site = entry.site
            record.platforms = set(entry.platforms)
            record.executable = entry.executable
            record.dependencies = list(entry.dependencies)
            record.filesize = entry.filesize

    def scan_local(self, root: Path, managed_dirs: Iterable[str]) -> List[FileRecord]:
        """
        Add records for files on disk that no index knows about.

        Returns the records that were added.
        """
        added = []
        skip_dirs = {STATE_DIR, STAGING_DIR}
        for path in iter_files(root, [d for d in managed_dirs if d not in skip_dirs]):
            if path.name.endswith(PART_SUFFIX):
                continue
            filename = relative_posix(path, root)
            if filename in self._records:
                continue
            record = FileRecord(filename=filename)
            self.add(record)
            added.append(record)
        return added

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "update_sites": [site.to_dict() for site in self._sites.values()],
            "files": [record.to_dict() for record in self],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FileCollection":
        return cls(
            sites=[UpdateSite.from_dict(s) for s in data.get("update_sites", [])],
            records=[FileRecord.from_dict(f) for f in data.get("files", [])],
        )
