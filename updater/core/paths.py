"""
Path helpers for Site Updater.
"""

import os
import sys
from pathlib import Path, PureWindowsPath
from typing import Optional

from .constants import STATE_DIR, INDEX_FILENAME, SETTINGS_FILENAME, STAGING_DIR


def get_bundle_dir() -> Path:
    """Get the directory where bundled resources are located (PyInstaller)."""
    if getattr(sys, "frozen", False):
        return Path(sys._MEIPASS)
    return Path(__file__).parent.parent.parent


def get_root(override: Optional[str] = None) -> Path:
    """
    Get the installation root.

    Order: explicit override, UPDATER_ROOT environment variable, current directory.
    """
    root = override or os.environ.get("UPDATER_ROOT")
    return Path(root).resolve() if root else Path.cwd()


def get_state_dir(root: Path) -> Path:
    """Get the per-installation state directory."""
    return root / STATE_DIR


def get_index_path(root: Path) -> Path:
    """Get path to the local index file."""
    return get_state_dir(root) / INDEX_FILENAME


def get_settings_path(root: Path) -> Path:
    """Get path to the settings file."""
    return get_state_dir(root) / SETTINGS_FILENAME


def get_staging_dir(root: Path) -> Path:
    """Get the directory staged downloads are written to."""
    return root / STAGING_DIR


def is_safe_filename(filename: str) -> bool:
    """
    Check that an index filename names a file under the installation root.

    Filenames are relative posix paths: no leading slash, no backslashes,
    no drive letter, and no empty, "." or ".." parts.
    """
    if not filename or filename.startswith("/") or "\\" in filename:
        return False
    if PureWindowsPath(filename).drive:
        return False
    return all(part not in ("", ".", "..") for part in filename.split("/"))


def check_filename(filename: str) -> str:
    """Return the filename unchanged, or raise ValueError if it is unsafe."""
    if not is_safe_filename(filename):
        raise ValueError(f"unsafe filename '{filename}'")
    return filename


def get_managed_path(base: Path, filename: str) -> Path:
    """
    Join a managed filename to a base directory.

    Raises:
        ValueError: if the filename is unsafe or resolves outside base
    """
    path = base / check_filename(filename)
    if not path.resolve().is_relative_to(base.resolve()):
        raise ValueError(f"'{filename}' resolves outside {base}")
    return path


def get_staging_path(root: Path, filename: str) -> Path:
    """Get the staging path for a managed file."""
    return get_managed_path(get_staging_dir(root), filename)
