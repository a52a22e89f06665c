"""
Endpoint module - Resolution of the server or cloud instance to talk to.
"""

from .resolver import Endpoint, OfficialCloudInstance, clean_url, resolve_endpoint


__all__ = [
    "Endpoint",
    "OfficialCloudInstance",
    "resolve_endpoint",
    "clean_url",
]
