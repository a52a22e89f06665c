"""
Provisioned Artifacts - Turn a cached file into a runnable path.

A plain artifact (the engine jar) is used as is. An archived artifact (a JRE)
is extracted once next to the cached archive, in ``<archive>_extracted``,
and its executable is looked up inside the extracted tree.
"""

import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from ..errors import ProvisioningError
from ..util.archive import ArchiveError, extract_archive

EXTRACTED_SUFFIX = "_extracted"


@dataclass(frozen=True)
class PlainArtifact:
    """A file that is executed or passed to the runtime directly"""
    path: Path

    def resolve(self, logger: Optional[Any] = None) -> Path:
        return self.path


@dataclass(frozen=True)
class ArchivedArtifact:
    """An archive whose executable lives at ``relative_executable`` once extracted"""
    archive_path: Path
    relative_executable: str

    @property
    def extracted_dir(self) -> Path:
        return self.archive_path.parent / (self.archive_path.name + EXTRACTED_SUFFIX)

    def resolve(self, logger: Optional[Any] = None) -> Path:
        """
        Extract the archive if needed and return the executable path.

        Extraction goes to a sibling temp directory which is then renamed.
        If another process renamed its own copy first, that copy is used.

        Raises:
            ProvisioningError: If the archive cannot be extracted
            ZipSlipError: If an entry escapes the target directory
        """
        logger = logger or structlog.get_logger(__name__)
        destination = self.extracted_dir
        if not destination.exists():
            _extract_once(self.archive_path, destination, logger)
        return destination / self.relative_executable


ProvisionedArtifact = Union[PlainArtifact, ArchivedArtifact]


def _extract_once(archive_path: Path, destination: Path, logger: Any):
    logger.debug("archive_extract", archive=str(archive_path), destination=str(destination))
    try:
        temp_dir = Path(tempfile.mkdtemp(prefix="jre", dir=archive_path.parent))
    except OSError as e:
        raise ProvisioningError(f"Failed to extract archive {archive_path}") from e

    try:
        extract_archive(archive_path, temp_dir)
        temp_dir.rename(destination)
    except OSError as e:
        shutil.rmtree(temp_dir, ignore_errors=True)
        if destination.is_dir():
            # Extracted by another process in the meantime
            logger.debug("archive_concurrent_extract", destination=str(destination))
            return
        raise ProvisioningError(f"Failed to extract archive {archive_path}") from e
    except ArchiveError:
        shutil.rmtree(temp_dir, ignore_errors=True)
        raise
