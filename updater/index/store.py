"""
Local index persistence for Site Updater.

The local index (.updater/db.json) holds the configured update sites and every
record the installation knows about. It is rewritten atomically so a crash
leaves either the previous or the new index on disk.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Tuple

from ..core.constants import INDEX_VERSION
from ..core.files import atomic_write_bytes
from ..errors import IndexLoadError
from .collection import FileCollection
from .fetch import fetch_site_document
from .records import UpdateSite
from .repository import RepositoryIndex

logger = logging.getLogger(__name__)

SiteFetcher = Callable[[UpdateSite], dict]


class IndexStore:
    """
    Loads and saves one installation's index.

    load() reads the local index, fetches every configured site's index and
    folds the remote state into the collection.
    """

    def __init__(self, path: Path, fetcher: Optional[SiteFetcher] = None):
        """
        Initialize the store.

        Args:
            path: Path to the local db.json
            fetcher: Callable returning a site's parsed db.json
                     (default: fetch_site_document)
        """
        self.path = path
        self.fetcher = fetcher or fetch_site_document

    def load_local(self) -> FileCollection:
        """
        Read the local index only.

        A missing file is an empty installation. An unreadable or malformed
        file is fatal: writing over it would lose every record.
        """
        if not self.path.exists():
            return FileCollection()
        try:
            with open(self.path) as f:
                data = json.load(f)
            return FileCollection.from_dict(data)
        except (json.JSONDecodeError, OSError) as e:
            raise IndexLoadError(f"Could not parse {self.path}: {e}", source=str(self.path)) from e
        except (KeyError, TypeError, ValueError) as e:
            raise IndexLoadError(f"Malformed entry in {self.path}: {e}", source=str(self.path)) from e

    def fetch_remote(self, collection: FileCollection) -> RepositoryIndex:
        """Fetch every configured site's index."""
        documents = {}
        for site in collection.sites:
            documents[site.name] = self.fetcher(site)
        try:
            return RepositoryIndex.from_site_documents(collection.site_names(), documents)
        except (KeyError, TypeError, ValueError) as e:
            raise IndexLoadError(f"Malformed remote index entry: {e}") from e

    def load(self) -> Tuple[RepositoryIndex, FileCollection]:
        """
        Load the local index and every site's index.

        Returns:
            Tuple of (remote index, collection with remote state merged in)

        Raises:
            IndexLoadError: if any index cannot be read
        """
        collection = self.load_local()
        index = self.fetch_remote(collection)
        collection.merge_index(index)
        logger.debug("Loaded %d records from %d sites", len(collection), len(collection.sites))
        return index, collection

    def save(self, collection: FileCollection):
        """
        Write the collection back.

        Raises:
            OSError: if the index cannot be written (the old index stays intact)
        """
        data = {
            "version": INDEX_VERSION,
            "generated": datetime.now(timezone.utc).isoformat(),
            **collection.to_dict(),
        }
        atomic_write_bytes(self.path, json.dumps(data, indent=2).encode("utf-8"))
        logger.debug("Wrote %s", self.path)


def site_document(entries) -> dict:
    """Build a site db.json document from remote entries."""
    return {
        "version": INDEX_VERSION,
        "generated": datetime.now(timezone.utc).isoformat(),
        "files": [entry.to_dict() for entry in sorted(entries, key=lambda e: e.filename)],
    }
