"""
File system utilities for Site Updater.
"""

import hashlib
import os
import tempfile
from pathlib import Path
from typing import Iterable, List

from .constants import HASH_CHUNK_SIZE
from .formatting import to_timestamp


def new_hasher():
    """Hash object used for all content checksums (SHA-1, hex digest)."""
    return hashlib.sha1()


def compute_checksum(path: Path) -> str:
    """
    Hash a file's content.

    Raises:
        OSError: if the file cannot be read
    """
    hasher = new_hasher()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def checksum_bytes(data: bytes) -> str:
    """Hash an in-memory blob the same way compute_checksum hashes files."""
    hasher = new_hasher()
    hasher.update(data)
    return hasher.hexdigest()


def file_timestamp(path: Path) -> int:
    """Modification time of a file as a yyyyMMddHHmmss integer."""
    return to_timestamp(path.stat().st_mtime)


def atomic_write_bytes(path: Path, data: bytes):
    """
    Write a file so readers see either the old or the new content.

    The data goes to a temp file in the same directory, is flushed to disk,
    and then renamed over the target.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def iter_files(base: Path, directories: Iterable[str]) -> List[Path]:
    """List regular files below the given subdirectories of base."""
    found = []
    for name in directories:
        top = base / name
        if not top.is_dir():
            continue
        for path in top.rglob("*"):
            if path.is_file() and not path.is_symlink():
                found.append(path)
    return sorted(found)
