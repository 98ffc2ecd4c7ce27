"""
Formatting utilities for Site Updater.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Union

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def to_timestamp(epoch: float) -> int:
    """
    Convert seconds since the epoch to a yyyyMMddHHmmss integer (UTC).

    Update sites store version timestamps in this form so they sort
    numerically and read naturally in file names.
    """
    return int(datetime.fromtimestamp(epoch, tz=timezone.utc).strftime(TIMESTAMP_FORMAT))


def now_timestamp() -> int:
    """Current time as a yyyyMMddHHmmss integer (UTC)."""
    return int(datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT))


def to_posix(path: Union[str, Path]) -> str:
    """
    Convert a path to a posix-style string (forward slashes).

    Filenames in the index always use forward slashes.
    """
    if isinstance(path, Path):
        return path.as_posix()
    return path.replace("\\", "/")


def relative_posix(path: Path, base: Path) -> str:
    """Get the relative path as a posix-style string."""
    return path.relative_to(base).as_posix()


def name_sort_key(name: str) -> str:
    """Sort key for case-insensitive name sorting."""
    return name.casefold()
