"""
Configuration management for Site Updater.

Config files:
- .updater/settings.json: per-installation transfer and scan settings
- .updater/db.json: update sites and file records (see updater.index.store)
"""

import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from .core.constants import DEFAULT_MANAGED_DIRS
from .core.platforms import KNOWN_PLATFORMS, current_platform


class UpdaterSettings:
    """
    Manages .updater/settings.json - settings that persist across runs.

    Stores:
    - Transfer tuning (worker count, retries, timeouts, chunk size)
    - Which directories are scanned for local-only files
    - An optional platform override (e.g. to manage a win64 tree from Linux)
    """

    def __init__(self, path: Path):
        self.path = path
        self.max_workers: int = 8
        self.max_retries: int = 3
        # (connect, read) seconds
        self.timeout: Tuple[int, int] = (10, 120)
        self.chunk_size: int = 32768
        self.managed_dirs: List[str] = list(DEFAULT_MANAGED_DIRS)
        self.platform: Optional[str] = None
        # Track if this is a fresh settings file (no file existed)
        self._is_new: bool = False

    @classmethod
    def load(cls, path: Path) -> "UpdaterSettings":
        """Load settings from file. Missing or unreadable files yield defaults."""
        settings = cls(path)

        if not path.exists():
            settings._is_new = True
            return settings

        try:
            with open(path) as f:
                data = json.load(f)

            settings.max_workers = max(1, int(data.get("max_workers", settings.max_workers)))
            settings.max_retries = max(1, int(data.get("max_retries", settings.max_retries)))
            timeout = data.get("timeout", list(settings.timeout))
            settings.timeout = (int(timeout[0]), int(timeout[1]))
            settings.chunk_size = max(1024, int(data.get("chunk_size", settings.chunk_size)))
            settings.managed_dirs = [str(d) for d in data.get("managed_dirs", settings.managed_dirs)]
            platform_name = data.get("platform")
            if platform_name and platform_name not in KNOWN_PLATFORMS:
                raise ValueError(f"unknown platform '{platform_name}'")
            settings.platform = platform_name or None
        except (json.JSONDecodeError, IOError, TypeError, ValueError, IndexError, AttributeError) as e:
            print(f"Warning: Could not load {path.name}: {e}", file=sys.stderr)
            return cls(path)

        return settings

    def save(self):
        """Save settings to file."""
        data = {
            "max_workers": self.max_workers,
            "max_retries": self.max_retries,
            "timeout": list(self.timeout),
            "chunk_size": self.chunk_size,
            "managed_dirs": self.managed_dirs,
        }
        if self.platform:
            data["platform"] = self.platform
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)

    @property
    def is_new(self) -> bool:
        return self._is_new

    def effective_platform(self) -> str:
        """The platform files are installed for."""
        return self.platform or current_platform()
