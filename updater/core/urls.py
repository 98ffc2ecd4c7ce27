"""
URL helpers for Site Updater.

Update sites may be remote (http/https) or local directories (file://).
"""

from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname


def is_file_url(url: str) -> bool:
    return urlparse(url).scheme == "file"


def file_url_to_path(url: str) -> Path:
    """Local path of a file:// URL."""
    return Path(url2pathname(urlparse(url).path))


def join_url(base: str, name: str) -> str:
    """Append a remote name to a site URL."""
    return f"{base.rstrip('/')}/{name}"
