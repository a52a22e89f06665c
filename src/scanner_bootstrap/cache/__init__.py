"""
Cache module - Content-addressed storage of provisioned artifacts.

Artifacts (JRE archives, scanner engine jars) are stored once per hash and
shared between every scanner process of the machine.
"""

from .download_cache import (
    CachedFile,
    CacheError,
    DownloadCache,
    Downloader,
    HashMismatchError,
)
from .hashes import HashComputationError, digest
from .housekeeping import sweep_stale_temp_files


__all__ = [
    # Cache
    "DownloadCache",
    "CachedFile",
    "Downloader",
    # Hashing
    "digest",
    # Housekeeping
    "sweep_stale_temp_files",
    # Exceptions
    "CacheError",
    "HashMismatchError",
    "HashComputationError",
]
