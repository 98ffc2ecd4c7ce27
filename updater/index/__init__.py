"""
Index model and persistence for Site Updater.

The local index records what is installed; each update site publishes its
own index of files, versions and dependencies.
"""

from .records import Action, Dependency, FileRecord, Status, UpdateSite, Version
from .repository import RemoteEntry, RepositoryIndex
from .collection import FileCollection, is_status, one_of, negate, both
from .fetch import fetch_site_document, site_index_url
from .store import IndexStore, site_document

__all__ = [
    # Records
    "Action",
    "Dependency",
    "FileRecord",
    "Status",
    "UpdateSite",
    "Version",
    # Remote view
    "RemoteEntry",
    "RepositoryIndex",
    # Collection
    "FileCollection",
    "is_status",
    "one_of",
    "negate",
    "both",
    # Persistence
    "IndexStore",
    "fetch_site_document",
    "site_index_url",
    "site_document",
]
