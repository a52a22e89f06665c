"""
Utilities - Archive extraction and platform detection.
"""

from .archive import (
    ArchiveError,
    ZipSlipError,
    extract_archive,
    extract_tar_gz,
    extract_zip,
)
from .platform import (
    ArchResolver,
    OperatingSystem,
    OsResolver,
    find_java_in_path,
    is_windows,
    java_executable_name,
)


__all__ = [
    # Archives
    "extract_zip",
    "extract_tar_gz",
    "extract_archive",
    "ArchiveError",
    "ZipSlipError",
    # Platform
    "OsResolver",
    "ArchResolver",
    "OperatingSystem",
    "find_java_in_path",
    "is_windows",
    "java_executable_name",
]
