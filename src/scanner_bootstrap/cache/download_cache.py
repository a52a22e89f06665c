"""
Download Cache - Content-addressed store for provisioned artifacts.

Files are indexed by hash rather than by name: artifacts downloaded from
different servers may share a filename and still differ. Every entry lives at
``<base_dir>/<hash>/<filename>``; ``<base_dir>/_tmp`` only holds downloads
that have not been verified yet.

Several scanner processes on one host commonly share the same cache, so the
cache never relies on in-process locks. A download always lands in a temp file
first and is then published with a single no-clobber link. When two processes
race on the same artifact the first one to publish wins and the others
silently reuse its file.
"""

import errno
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

import structlog

from ..errors import ScannerBootstrapError
from .hashes import HashComputationError, digest

TMP_DIR_NAME = "_tmp"

# errno values meaning "this filesystem cannot hard link here"
_LINK_UNSUPPORTED = {
    errno.EPERM,
    errno.EXDEV,
    errno.EMLINK,
    errno.ENOTSUP,
    getattr(errno, "EOPNOTSUPP", errno.ENOTSUP),
}


class Downloader(Protocol):
    """Fetches the bytes of an artifact into a local file"""

    async def download(self, filename: str, to_file: Path) -> None:
        ...


@dataclass(frozen=True)
class CachedFile:
    """A file stored in the cache. ``cache_hit`` is only used for telemetry."""
    path: Path
    cache_hit: bool


class CacheError(ScannerBootstrapError):
    """Raised when the cache cannot download, hash or store a file"""
    pass


class HashMismatchError(ScannerBootstrapError):
    """
    Raised when a downloaded file does not have the expected hash.

    The downloaded file is left in the temp directory for diagnosis.
    """

    def __init__(self, expected_hash: str, actual_hash: str, downloaded_file: Path):
        super().__init__(
            f"Hash mismatch for file {downloaded_file}. "
            f"Expected hash: {expected_hash}, actual hash: {actual_hash}"
        )
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        self.downloaded_file = downloaded_file


class DownloadCache:
    """
    Content-addressed download cache.

    Example:
        >>> cache = DownloadCache(Path("~/.sonar/cache").expanduser())
        >>> cached = await cache.get_or_download(
        ...     "engine.jar", sha256, "SHA-256", downloader
        ... )
        >>> cached.path
    """

    def __init__(self, base_dir: Path, logger: Optional[Any] = None):
        """
        Initialize the cache. Directories are created on first write.

        Args:
            base_dir: Root directory of the cache
            logger: structlog logger (module logger if None)
        """
        self.base_dir = Path(base_dir)
        self.tmp_dir = self.base_dir / TMP_DIR_NAME
        self.logger = logger or structlog.get_logger(__name__)

        self.logger.debug("download_cache_initialized", base_dir=str(self.base_dir))

    def lookup(self, filename: str, file_hash: str) -> Optional[Path]:
        """
        Look for a file in the cache by its filename and hash.

        Returns:
            Path of the cached file, or None if it is not cached
        """
        _check_path_component(filename, "file name")
        _check_path_component(file_hash, "hash")
        cached_file = self._hash_dir(file_hash) / filename
        if cached_file.exists():
            return cached_file
        return None

    async def get_or_download(
        self,
        filename: str,
        expected_hash: str,
        hash_algorithm: str,
        downloader: Downloader,
    ) -> CachedFile:
        """
        Return a cached file, downloading and verifying it first if needed.

        Files already present are trusted without being hashed again.

        Args:
            filename: Name of the artifact
            expected_hash: Hash announced by the artifact metadata
            hash_algorithm: Algorithm of expected_hash (e.g. "SHA-256")
            downloader: Byte source used on cache miss

        Returns:
            CachedFile pointing inside the cache directory

        Raises:
            HashMismatchError: If the downloaded bytes do not match
            CacheError: On I/O failure while downloading or storing, or if
                filename or expected_hash is not a single path component
        """
        _check_path_component(filename, "file name")
        _check_path_component(expected_hash, "hash")
        hash_dir = self._hash_dir(expected_hash)
        target_file = hash_dir / filename
        if target_file.exists():
            self.logger.debug("cache_hit", file=str(target_file))
            return CachedFile(path=target_file, cache_hit=True)

        temp_file = self._new_temp_file(filename)
        await self._download(downloader, filename, temp_file)

        try:
            downloaded_hash = digest(temp_file, hash_algorithm)
        except HashComputationError as e:
            raise CacheError(f"Fail to compute hash of {temp_file}") from e

        if expected_hash.lower() != downloaded_hash:
            raise HashMismatchError(expected_hash, downloaded_hash, temp_file.absolute())

        self._mkdirs(hash_dir)
        self._publish(temp_file, target_file)
        return CachedFile(path=target_file, cache_hit=False)

    async def _download(self, downloader: Downloader, filename: str, temp_file: Path):
        self.logger.debug("cache_download", filename=filename, temp_file=str(temp_file))
        try:
            await downloader.download(filename, temp_file)
        except (OSError, ScannerBootstrapError) as e:
            raise CacheError(f"Fail to download {filename} to {temp_file}") from e

    def _publish(self, temp_file: Path, target_file: Path):
        """
        Move a verified temp file to its final location.

        ``os.link`` fails instead of overwriting, which gives an atomic
        "first writer wins" publish on filesystems that support hard links.
        """
        try:
            os.link(temp_file, target_file)
        except FileExistsError:
            # Cached by another process in the meantime
            self.logger.debug("cache_concurrent_download", file=str(target_file))
            self._discard(temp_file)
            return
        except OSError as e:
            if e.errno not in _LINK_UNSUPPORTED:
                raise CacheError(f"Failed to move {temp_file} to {target_file}") from e
            self._move_non_atomic(temp_file, target_file)
            return

        self._discard(temp_file)

    def _move_non_atomic(self, temp_file: Path, target_file: Path):
        self.logger.warning(
            "cache_atomic_move_unsupported",
            source=str(temp_file.absolute()),
            target=str(target_file.absolute()),
            message="Falling back to copy/delete, atomicity is not guaranteed",
        )
        if target_file.exists():
            self._discard(temp_file)
            return
        try:
            shutil.move(str(temp_file), str(target_file))
        except OSError as e:
            raise CacheError(f"Failed to move {temp_file} to {target_file}") from e

    def _discard(self, temp_file: Path):
        try:
            temp_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            # leftovers in _tmp are swept by housekeeping
            self.logger.debug("cache_temp_not_deleted", file=str(temp_file), error=str(e))

    def _new_temp_file(self, filename: str) -> Path:
        self._mkdirs(self.tmp_dir)
        stem, dot, extension = filename.rpartition(".")
        if not stem:
            prefix, suffix = filename, ""
        else:
            prefix, suffix = stem, dot + extension
        try:
            fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=self.tmp_dir)
        except OSError as e:
            raise CacheError(f"Fail to create temp file in {self.tmp_dir}") from e
        os.close(fd)
        return Path(name)

    def _mkdirs(self, directory: Path):
        if directory.is_dir():
            return
        self.logger.debug("cache_create_directory", directory=str(directory))
        try:
            # exist_ok: another process may create it at the same time
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Unable to create directory: {directory}") from e

    def _hash_dir(self, file_hash: str) -> Path:
        return self.base_dir / file_hash

    def __repr__(self) -> str:
        """String representation"""
        return f"DownloadCache(base_dir={self.base_dir})"


def _check_path_component(value: str, kind: str):
    """Hashes and file names each map to exactly one directory level"""
    if value in ("", ".", "..") or "/" in value or "\\" in value:
        raise CacheError(f"Invalid {kind} for the cache: '{value}'")
