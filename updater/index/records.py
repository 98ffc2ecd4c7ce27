"""
Index records for Site Updater.

A FileRecord describes one managed file: every version the index remembers,
where it is published, what it depends on, and what the last apply installed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from ..core.paths import check_filename
from ..core.urls import join_url


class Status(Enum):
    """Synchronization state of one file, recomputed on every resolution pass."""
    NOT_INSTALLED = "NOT_INSTALLED"
    NEW = "NEW"
    INSTALLED = "INSTALLED"
    UPDATEABLE = "UPDATEABLE"
    MODIFIED = "MODIFIED"
    LOCAL_ONLY = "LOCAL_ONLY"
    OBSOLETE = "OBSOLETE"
    OBSOLETE_MODIFIED = "OBSOLETE_MODIFIED"
    OBSOLETE_UNINSTALLED = "OBSOLETE_UNINSTALLED"

    def __str__(self) -> str:
        return self.value


class Action(Enum):
    """What an apply or upload pass will do with one file."""
    INSTALL = "INSTALL"
    UPDATE = "UPDATE"
    UNINSTALL = "UNINSTALL"
    UPLOAD = "UPLOAD"
    REMOVE = "REMOVE"
    NONE = "NONE"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Version:
    """One published version of a file."""
    checksum: str
    timestamp: int

    def to_dict(self) -> dict:
        return {"checksum": self.checksum, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> "Version":
        return cls(checksum=data["checksum"], timestamp=int(data.get("timestamp", 0)))


@dataclass(frozen=True)
class Dependency:
    """A file another file needs, with the oldest acceptable timestamp."""
    filename: str
    timestamp: int = 0
    overrides: bool = False

    def to_dict(self) -> dict:
        d = {"filename": self.filename, "timestamp": self.timestamp}
        if self.overrides:
            d["overrides"] = True
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Dependency":
        return cls(
            filename=data["filename"],
            timestamp=int(data.get("timestamp", 0)),
            overrides=bool(data.get("overrides", False)),
        )


@dataclass
class UpdateSite:
    """A remote repository publishing an index and file content."""
    name: str
    url: str
    upload_url: Optional[str] = None
    username: Optional[str] = None

    @property
    def is_uploadable(self) -> bool:
        return bool(self.upload_url)

    @property
    def long_name(self) -> str:
        return f"{self.name} ({self.upload_url or ''})"

    def file_url(self, filename: str, timestamp: int) -> str:
        """URL of one version of a file on this site."""
        return join_url(self.url, f"{filename.replace(' ', '%20')}-{timestamp}")

    def to_dict(self) -> dict:
        d = {"name": self.name, "url": self.url}
        if self.upload_url:
            d["upload_url"] = self.upload_url
        if self.username:
            d["username"] = self.username
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "UpdateSite":
        return cls(
            name=data["name"],
            url=data["url"],
            upload_url=data.get("upload_url"),
            username=data.get("username"),
        )


@dataclass
class FileRecord:
    """
    One managed file.

    versions is the checksum history, oldest to newest. status and action are
    working state for one pass and are never written to the index.
    """
    filename: str
    versions: List[Version] = field(default_factory=list)
    platforms: Set[str] = field(default_factory=set)
    executable: bool = False
    dependencies: List[Dependency] = field(default_factory=list)
    update_site: Optional[str] = None
    filesize: int = 0
    local_checksum: Optional[str] = None
    local_timestamp: int = 0
    status: Status = field(default=Status.NOT_INSTALLED, compare=False)
    action: Action = field(default=Action.NONE, compare=False)

    def __post_init__(self):
        self.versions = sorted(self.versions, key=lambda v: v.timestamp)

    @property
    def latest(self) -> Optional[Version]:
        """Newest version the index remembers."""
        return self.versions[-1] if self.versions else None

    @property
    def timestamp(self) -> int:
        """Timestamp of the installed version, falling back to the newest known."""
        if self.local_checksum:
            for version in self.versions:
                if version.checksum == self.local_checksum:
                    return version.timestamp
            return self.local_timestamp
        latest = self.latest
        return latest.timestamp if latest else 0

    def has_version(self, checksum: str) -> bool:
        return any(v.checksum == checksum for v in self.versions)

    def add_version(self, version: Version):
        """Remember a version, keeping the history ordered by timestamp."""
        if self.has_version(version.checksum):
            return
        self.versions.append(version)
        self.versions.sort(key=lambda v: v.timestamp)

    def is_updateable_platform(self, platform_name: str) -> bool:
        """Files without platform restrictions are valid everywhere."""
        return not self.platforms or platform_name in self.platforms

    def to_dict(self) -> dict:
        d = {
            "filename": self.filename,
            "versions": [v.to_dict() for v in self.versions],
        }
        if self.platforms:
            d["platforms"] = sorted(self.platforms)
        if self.executable:
            d["executable"] = True
        if self.dependencies:
            d["dependencies"] = [dep.to_dict() for dep in self.dependencies]
        if self.update_site:
            d["update_site"] = self.update_site
        if self.filesize:
            d["filesize"] = self.filesize
        if self.local_checksum:
            d["local_checksum"] = self.local_checksum
            d["local_timestamp"] = self.local_timestamp
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "FileRecord":
        return cls(
            filename=check_filename(data["filename"]),
            versions=[Version.from_dict(v) for v in data.get("versions", [])],
            platforms=set(data.get("platforms", [])),
            executable=bool(data.get("executable", False)),
            dependencies=[Dependency.from_dict(d) for d in data.get("dependencies", [])],
            update_site=data.get("update_site"),
            filesize=int(data.get("filesize", 0)),
            local_checksum=data.get("local_checksum"),
            local_timestamp=int(data.get("local_timestamp", 0)),
        )
