"""
Platform detection for Site Updater.

Platform names follow the update site convention: linux32, linux64,
win32, win64, macosx.
"""

import os
import platform
import sys

KNOWN_PLATFORMS = {"linux32", "linux64", "win32", "win64", "macosx"}


def current_platform() -> str:
    """Get the platform tag of the running interpreter."""
    is_64bit = sys.maxsize > 2 ** 32
    system = platform.system().lower()
    if system == "darwin":
        return "macosx"
    if system == "windows":
        return "win64" if is_64bit else "win32"
    return "linux64" if is_64bit else "linux32"


def is_windows(platform_name: str = None) -> bool:
    """Check if a platform tag (default: the running one) is Windows."""
    if platform_name is None:
        return os.name == "nt"
    return platform_name.startswith("win")
