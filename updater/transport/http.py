"""
HTTP transport for Site Updater.

Downloads stream through aiohttp (see Downloader); uploads and the login
check go through requests. Sites whose URL is file:// are plain directories
and are read and written directly.
"""

import asyncio
import os
import ssl
import sys
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Tuple

import aiohttp
import certifi
import requests

from ..core.files import atomic_write_bytes
from ..core.urls import file_url_to_path, is_file_url, join_url
from ..errors import AuthError, TransferFailed
from .proxy import ProxyConfig


def get_certifi_path() -> str:
    """Get path to certifi CA bundle, handling PyInstaller bundles."""
    if getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS'):
        bundled_cert = os.path.join(sys._MEIPASS, 'certifi', 'cacert.pem')
        if os.path.exists(bundled_cert):
            return bundled_cert
    return certifi.where()


@dataclass(frozen=True)
class Credentials:
    """Username and password for one update site."""
    username: str
    password: str


@dataclass
class UploadSession:
    """A logged-in connection to one site's upload location."""
    site_name: str
    upload_url: str
    http: Optional[requests.Session] = None

    def close(self):
        if self.http is not None:
            self.http.close()


class HttpTransport:
    """
    Moves file content between update sites and the local disk.

    Args:
        proxy: Explicit proxy (None = environment/system settings)
        timeout: (connect, read) timeouts in seconds
        chunk_size: Bytes per streamed read
    """

    METADATA_HEADER_PREFIX = "X-Updater-"

    def __init__(
        self,
        proxy: Optional[ProxyConfig] = None,
        timeout: Tuple[int, int] = (10, 120),
        chunk_size: int = 32768,
    ):
        self.proxy = proxy
        self.timeout = timeout
        self.chunk_size = chunk_size

    # ------------------------------------------------------------------
    # Download side
    # ------------------------------------------------------------------

    def session(self, limit: int = 8) -> aiohttp.ClientSession:
        """Create a download session. Must be called inside a running event loop."""
        ssl_context = ssl.create_default_context(cafile=get_certifi_path())
        connector = aiohttp.TCPConnector(
            limit=limit * 2,
            limit_per_host=limit,
            ttl_dns_cache=300,
            keepalive_timeout=30,
            ssl=ssl_context,
        )
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(connect=self.timeout[0], sock_read=self.timeout[1]),
            connector=connector,
            trust_env=self.proxy is None,
        )

    async def fetch(self, session: aiohttp.ClientSession, reference: str) -> AsyncIterator[bytes]:
        """
        Stream the content behind a reference.

        Raises:
            AuthError: if the site refuses access (401/403)
            aiohttp.ClientError, asyncio.TimeoutError, OSError: on transfer failure
        """
        if is_file_url(reference):
            path = file_url_to_path(reference)
            with open(path, "rb") as f:
                while True:
                    chunk = f.read(self.chunk_size)
                    if not chunk:
                        break
                    yield chunk
                    await asyncio.sleep(0)
            return

        proxy = self.proxy.url if self.proxy else None
        async with session.get(reference, allow_redirects=True, proxy=proxy) as response:
            if response.status in (401, 403):
                raise AuthError(reference, f"access denied (HTTP {response.status})")
            response.raise_for_status()
            async for chunk in response.content.iter_chunked(self.chunk_size):
                if chunk:
                    yield chunk

    # ------------------------------------------------------------------
    # Upload side
    # ------------------------------------------------------------------

    def needs_credentials(self, site) -> bool:
        """Directory sites are written with the caller's own file permissions."""
        return bool(site.upload_url) and not is_file_url(site.upload_url)

    def login(self, site, credentials: Optional[Credentials]) -> UploadSession:
        """
        Open an upload session for a site.

        Raises:
            AuthError: if no credentials were given or the site rejects them
        """
        if not site.upload_url:
            raise AuthError(site.name, "site has no upload location")

        if is_file_url(site.upload_url):
            directory = file_url_to_path(site.upload_url)
            directory.mkdir(parents=True, exist_ok=True)
            if not os.access(directory, os.W_OK):
                raise AuthError(site.name, f"upload directory {directory} is not writable")
            return UploadSession(site_name=site.name, upload_url=site.upload_url)

        if credentials is None:
            raise AuthError(site.name, "no credentials given")

        http = requests.Session()
        http.auth = (credentials.username, credentials.password)
        if self.proxy:
            http.proxies.update(self.proxy.requests_proxies())
        try:
            response = http.head(site.upload_url, timeout=self.timeout[0], allow_redirects=True)
        except requests.RequestException as e:
            http.close()
            raise AuthError(site.name, f"login failed: {e}") from e
        if response.status_code in (401, 403):
            http.close()
            raise AuthError(site.name, f"login failed (HTTP {response.status_code})")
        return UploadSession(site_name=site.name, upload_url=site.upload_url, http=http)

    def push(self, session: UploadSession, remote_name: str, data: bytes, metadata: dict = None):
        """
        Store content under a name on the session's site.

        Raises:
            AuthError: if the site refuses the write
            TransferFailed: on any other failure
        """
        if session.http is None:
            target = file_url_to_path(join_url(session.upload_url, remote_name))
            try:
                atomic_write_bytes(target, data)
            except OSError as e:
                raise TransferFailed(remote_name, str(e)) from e
            return

        headers = {
            f"{self.METADATA_HEADER_PREFIX}{key.title()}": str(value)
            for key, value in (metadata or {}).items()
        }
        url = join_url(session.upload_url, remote_name.replace(" ", "%20"))
        try:
            response = session.http.put(url, data=data, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransferFailed(remote_name, str(e)) from e
        if response.status_code in (401, 403):
            raise AuthError(session.site_name, f"upload refused (HTTP {response.status_code})")
        if response.status_code >= 400:
            raise TransferFailed(remote_name, f"HTTP {response.status_code}")
