"""
HTTP module - Server communication used by provisioning.
"""

from .client import HttpError, ScannerHttpClient
from .config import HttpConfig, parse_duration


__all__ = [
    "ScannerHttpClient",
    "HttpConfig",
    "HttpError",
    "parse_duration",
]
