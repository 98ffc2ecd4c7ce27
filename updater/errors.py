"""
Error types for Site Updater.

Batch-wide failures (index load, mixed upload sites, failed login) are raised
and abort the batch before anything is mutated. Per-file failures are carried
as values in result objects so sibling files keep going.
"""

from typing import Optional


class UpdaterError(Exception):
    """Base class for all updater errors."""


class IndexLoadError(UpdaterError):
    """The local or a remote index could not be read. Fatal to the run."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class FileError(UpdaterError):
    """An error tied to a single managed file."""

    def __init__(self, filename: str, reason: str):
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason


class ChecksumMismatch(FileError):
    """Downloaded content does not hash to the expected checksum."""

    def __init__(self, filename: str, expected: str, actual: str):
        super().__init__(filename, f"checksum mismatch (expected {expected}, got {actual})")
        self.expected = expected
        self.actual = actual


class TransferFailed(FileError):
    """Network or disk I/O failed while moving a file's content."""


class CommitIOError(FileError):
    """Moving a staged file into place (or deleting it) failed."""


class DependencyMissingWarning(UserWarning):
    """A dependency points at a file the collection does not know."""


class MultiSiteUploadError(UpdaterError):
    """An upload batch names files from more than one update site."""

    def __init__(self, first: tuple, second: tuple):
        first_name, first_site = first
        second_name, second_site = second
        super().__init__(
            f"Cannot upload to multiple update sites ({first_name} to {first_site} "
            f"and {second_name} to {second_site})"
        )
        self.sites = (first_site, second_site)


class AuthError(UpdaterError):
    """Login to an update site was refused or no credentials were given."""

    def __init__(self, site: str, reason: str = "login failed"):
        super().__init__(f"{site}: {reason}")
        self.site = site


class UnknownFileError(UpdaterError):
    """A command named a file the collection does not contain."""

    def __init__(self, filename: str):
        super().__init__(f"No file '{filename}' found!")
        self.filename = filename


class UploadCancelled(UpdaterError):
    """No upload site was chosen."""


class DependencyDriftWarning(UserWarning):
    """A dependency requires a newer version than any index knows."""
