"""
Remote index fetching for Site Updater.
"""

import json
import logging
from typing import Optional

import requests

from ..core.constants import INDEX_FILENAME
from ..core.urls import file_url_to_path, is_file_url, join_url
from ..errors import IndexLoadError
from ..transport.proxy import ProxyConfig
from .records import UpdateSite

logger = logging.getLogger(__name__)


def site_index_url(site: UpdateSite) -> str:
    return join_url(site.url, INDEX_FILENAME)


def fetch_site_document(
    site: UpdateSite,
    timeout: float = 10,
    proxy: Optional[ProxyConfig] = None,
) -> dict:
    """
    Fetch and parse one site's db.json.

    Returns:
        The parsed document ({"files": [...]})

    Raises:
        IndexLoadError: if the site cannot be reached or the index is malformed
    """
    url = site_index_url(site)
    logger.debug("Fetching index of %s from %s", site.name, url)

    if is_file_url(url):
        path = file_url_to_path(url)
        if not path.exists():
            # An empty site publishes nothing yet
            return {"files": []}
        try:
            with open(path) as f:
                document = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise IndexLoadError(f"Could not read index of site '{site.name}': {e}", source=url) from e
    else:
        try:
            response = requests.get(url, timeout=timeout, proxies=proxy.requests_proxies() if proxy else None)
            response.raise_for_status()
            document = response.json()
        except requests.HTTPError as e:
            raise IndexLoadError(
                f"Could not fetch index of site '{site.name}' (HTTP {e.response.status_code})", source=url
            ) from e
        except requests.Timeout as e:
            raise IndexLoadError(f"Timed out fetching index of site '{site.name}'", source=url) from e
        except (requests.RequestException, ValueError) as e:
            raise IndexLoadError(f"Could not fetch index of site '{site.name}': {e}", source=url) from e

    if not isinstance(document, dict) or not isinstance(document.get("files", []), list):
        raise IndexLoadError(f"Index of site '{site.name}' is malformed", source=url)
    return document
