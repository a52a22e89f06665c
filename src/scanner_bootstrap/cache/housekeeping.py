"""
Housekeeping - Sweep stale downloads left in the cache temp directory.

Interrupted or rejected downloads stay in ``_tmp`` (hash mismatches are kept
on purpose for diagnosis). This pass is run separately from downloads, never
by the cache itself.
"""

import time
from typing import Any, Optional

import structlog

from .download_cache import DownloadCache

ONE_DAY_SECONDS = 24 * 60 * 60


def sweep_stale_temp_files(
    cache: DownloadCache,
    max_age_seconds: float = ONE_DAY_SECONDS,
    logger: Optional[Any] = None,
) -> int:
    """
    Delete files in the cache temp directory older than max_age_seconds.

    Files that cannot be deleted (e.g. still open on Windows) are skipped.

    Returns:
        Number of deleted files
    """
    logger = logger or structlog.get_logger(__name__)
    if not cache.tmp_dir.is_dir():
        return 0

    threshold = time.time() - max_age_seconds
    deleted = 0
    for candidate in cache.tmp_dir.iterdir():
        try:
            if candidate.is_file() and candidate.stat().st_mtime < threshold:
                candidate.unlink()
                deleted += 1
        except OSError as e:
            logger.debug("temp_file_not_deleted", file=str(candidate), error=str(e))

    if deleted:
        logger.info("stale_temp_files_deleted", count=deleted, directory=str(cache.tmp_dir))
    return deleted
