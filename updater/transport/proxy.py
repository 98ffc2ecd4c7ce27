"""
Proxy configuration for Site Updater.

Read once at startup from the http_proxy environment variable.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class ProxyConfig:
    """An HTTP proxy host and port."""
    host: str
    port: int = 80

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def requests_proxies(self) -> dict:
        """Proxy mapping in the form requests expects."""
        return {"http": self.url, "https": self.url}

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ProxyConfig"]:
        """
        Parse an http_proxy value of the form http://host[:port][/...].

        Returns None when the value is unset or not an http:// URL, in which
        case the HTTP libraries fall back to the system proxy settings.
        """
        if not value or not value.startswith("http://"):
            return None
        rest = value[len("http://"):]
        host_port = rest.split("/", 1)[0]
        if ":" in host_port:
            host, port = host_port.split(":", 1)
            return cls(host=host, port=int(port))
        return cls(host=host_port)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> Optional["ProxyConfig"]:
        environ = os.environ if environ is None else environ
        return cls.parse(environ.get("http_proxy"))
