"""
Transport layer for Site Updater.

Fetches file content from update sites and pushes uploads to them.
"""

from .proxy import ProxyConfig
from .http import Credentials, HttpTransport, UploadSession, get_certifi_path

__all__ = [
    "ProxyConfig",
    "Credentials",
    "HttpTransport",
    "UploadSession",
    "get_certifi_path",
]
