"""Pytest configuration and fixtures."""

import json
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from updater.core.files import checksum_bytes
from updater.index import (
    Dependency,
    FileCollection,
    IndexStore,
    RemoteEntry,
    UpdateSite,
    Version,
    site_document,
)
from updater.transport.http import Credentials


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "stress: stress tests with large data (skipped in CI)"
    )


class FakeUI:
    """User-interaction double that records everything it is told."""

    def __init__(self, answer_yes: bool = True, choice: Optional[int] = 0, credentials=None):
        self.answer_yes = answer_yes
        self.choice = choice
        self.credentials = credentials
        self.warnings: List[str] = []
        self.messages: List[str] = []
        self.questions: List[str] = []
        self.progress: List[tuple] = []
        self.credential_requests: List[str] = []

    def prompt_yes_no(self, title, message):
        self.questions.append(message)
        return self.answer_yes

    def choose_one(self, message, options, default=0):
        self.questions.append(message)
        return self.choice

    def get_credentials(self, site):
        self.credential_requests.append(site.name)
        return self.credentials

    def report_progress(self, job_id, done, total):
        self.progress.append((job_id, done, total))

    def warn(self, message):
        self.warnings.append(message)

    def info(self, message):
        self.messages.append(message)


class LocalSite:
    """
    An update site backed by a directory, reachable as a file:// URL.

    Content is written as <filename>-<timestamp>; publish() writes db.json.
    """

    def __init__(self, name: str, directory: Path):
        self.name = name
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)
        self.entries: Dict[str, RemoteEntry] = {}

    @property
    def url(self) -> str:
        return self.directory.as_uri()

    def site(self, uploadable: bool = False) -> UpdateSite:
        return UpdateSite(name=self.name, url=self.url, upload_url=self.url if uploadable else None)

    def add(
        self,
        filename: str,
        content: bytes,
        timestamp: int,
        dependencies=(),
        platforms=(),
        executable: bool = False,
        corrupt: bool = False,
    ) -> str:
        """Publish a new version of a file. Returns its checksum."""
        checksum = checksum_bytes(content)
        target = self.directory / f"{filename}-{timestamp}"
        target.parent.mkdir(parents=True, exist_ok=True)
        # A corrupt site serves bytes that do not match the index
        target.write_bytes(content + b"garbage" if corrupt else content)

        previous = self.entries.get(filename)
        versions = previous.versions if previous else ()
        self.entries[filename] = RemoteEntry(
            filename=filename,
            site=self.name,
            versions=versions + (Version(checksum, timestamp),),
            current=True,
            platforms=frozenset(platforms),
            executable=executable,
            dependencies=tuple(
                d if isinstance(d, Dependency) else Dependency(d) for d in dependencies
            ),
            filesize=len(content),
        )
        return checksum

    def withdraw(self, filename: str):
        entry = self.entries[filename]
        self.entries[filename] = RemoteEntry(
            filename=entry.filename,
            site=entry.site,
            versions=entry.versions,
            current=False,
            platforms=entry.platforms,
            executable=entry.executable,
            dependencies=entry.dependencies,
            filesize=entry.filesize,
        )

    def publish(self):
        (self.directory / "db.json").write_text(json.dumps(site_document(self.entries.values())))

    def document(self) -> dict:
        return json.loads((self.directory / "db.json").read_text())


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def install_root(temp_dir):
    root = temp_dir / "install"
    root.mkdir()
    return root


@pytest.fixture
def make_site(temp_dir):
    """Factory for file:// update sites under the temp dir."""
    def _make(name: str) -> LocalSite:
        return LocalSite(name, temp_dir / "sites" / name)
    return _make


@pytest.fixture
def make_ui():
    """Factory for FakeUI with chosen answers."""
    return FakeUI


@pytest.fixture
def fake_ui():
    return FakeUI(credentials=Credentials("alice", "secret"))


@pytest.fixture
def load_installation():
    """Write a local index naming the sites, then load it like the app does."""
    def _load(root: Path, *sites, uploadable: bool = False):
        store = IndexStore(root / ".updater" / "db.json")
        store.save(FileCollection(sites=[s.site(uploadable=uploadable) for s in sites]))
        index, collection = store.load()
        return store, index, collection
    return _load


@pytest.fixture
def write_file():
    def _write(root: Path, filename: str, content: bytes) -> Path:
        path = root / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path
    return _write
