"""
Read-only view of what the update sites publish.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from ..core.paths import check_filename
from .records import Dependency, Version


@dataclass(frozen=True)
class RemoteEntry:
    """One file as described by one site's index."""
    filename: str
    site: str
    versions: Tuple[Version, ...] = ()
    current: bool = True
    platforms: FrozenSet[str] = frozenset()
    executable: bool = False
    dependencies: Tuple[Dependency, ...] = ()
    filesize: int = 0

    @property
    def latest(self) -> Optional[Version]:
        return self.versions[-1] if self.versions else None

    def has_version(self, checksum: str) -> bool:
        return any(v.checksum == checksum for v in self.versions)

    def to_dict(self) -> dict:
        d = {
            "filename": self.filename,
            "versions": [v.to_dict() for v in self.versions],
        }
        if not self.current:
            d["current"] = False
        if self.platforms:
            d["platforms"] = sorted(self.platforms)
        if self.executable:
            d["executable"] = True
        if self.dependencies:
            d["dependencies"] = [dep.to_dict() for dep in self.dependencies]
        if self.filesize:
            d["filesize"] = self.filesize
        return d

    @classmethod
    def from_dict(cls, site: str, data: dict) -> "RemoteEntry":
        versions = sorted(
            (Version.from_dict(v) for v in data.get("versions", [])),
            key=lambda v: v.timestamp,
        )
        return cls(
            filename=check_filename(data["filename"]),
            site=site,
            versions=tuple(versions),
            current=bool(data.get("current", True)) and bool(versions),
            platforms=frozenset(data.get("platforms", [])),
            executable=bool(data.get("executable", False)),
            dependencies=tuple(Dependency.from_dict(d) for d in data.get("dependencies", [])),
            filesize=int(data.get("filesize", 0)),
        )


class RepositoryIndex:
    """
    Immutable mapping of filename -> {site name: RemoteEntry}.

    Sites are kept in configuration order; when two sites publish the same
    file the later one shadows the earlier one.
    """

    def __init__(self, entries: Iterable[RemoteEntry] = (), site_order: Iterable[str] = ()):
        site_order = tuple(site_order)
        by_file: Dict[str, Dict[str, RemoteEntry]] = {}
        for entry in entries:
            by_file.setdefault(entry.filename, {})[entry.site] = entry
            if entry.site not in site_order:
                site_order += (entry.site,)
        self._site_order = site_order
        self._entries: Mapping[str, Mapping[str, RemoteEntry]] = MappingProxyType({
            name: MappingProxyType(sites) for name, sites in by_file.items()
        })

    @classmethod
    def from_site_documents(cls, site_order: Iterable[str], documents: Mapping[str, dict]) -> "RepositoryIndex":
        """Build an index from parsed db.json documents keyed by site name."""
        entries = []
        for site, document in documents.items():
            for data in document.get("files", []):
                entries.append(RemoteEntry.from_dict(site, data))
        return cls(entries, site_order)

    @property
    def site_order(self) -> Tuple[str, ...]:
        return self._site_order

    def __contains__(self, filename: str) -> bool:
        return filename in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def filenames(self) -> List[str]:
        return sorted(self._entries)

    def entries(self, filename: str) -> Mapping[str, RemoteEntry]:
        """All sites' entries for a file (current or not)."""
        return self._entries.get(filename, MappingProxyType({}))

    def entry(self, filename: str, site: str) -> Optional[RemoteEntry]:
        return self.entries(filename).get(site)

    def current_entry(self, filename: str, preferred_site: Optional[str] = None) -> Optional[RemoteEntry]:
        """
        The entry that currently publishes a file.

        The preferred site wins while it still publishes the file; otherwise
        the last site in configuration order that does.
        """
        entries = self.entries(filename)
        preferred = entries.get(preferred_site) if preferred_site else None
        if preferred is not None and preferred.current:
            return preferred
        for site in reversed(self._site_order):
            entry = entries.get(site)
            if entry is not None and entry.current:
                return entry
        return None

    def site_entries(self, site: str) -> List[RemoteEntry]:
        """Every entry one site publishes, sorted by filename."""
        return [
            sites[site] for name, sites in sorted(self._entries.items())
            if site in sites
        ]

    def known_versions(self, filename: str) -> List[Version]:
        """Union of every site's checksum history for a file."""
        seen = {}
        for entry in self.entries(filename).values():
            for version in entry.versions:
                seen.setdefault(version.checksum, version)
        return sorted(seen.values(), key=lambda v: v.timestamp)
