"""
Site Updater - keep a local installation in sync with remote update sites.

Tracks versioned files against one or more update sites, computes each
file's status, resolves dependencies and performs checksum-verified
installation, removal and upload.

Import from submodules directly:
    from updater.index import IndexStore, FileCollection
    from updater.sync import StatusResolver, ActionPlanner, Installer
    from updater.ui import ConsoleUI
"""


def _get_version():
    """Read version from VERSION file."""
    from pathlib import Path
    from .core.paths import get_bundle_dir
    # Try relative to this file first (source), then bundle dir (PyInstaller)
    for base in [Path(__file__).parent.parent, get_bundle_dir()]:
        version_file = base / "VERSION"
        if version_file.exists():
            return version_file.read_text().strip()
    return "0.0.0"


__version__ = _get_version()
