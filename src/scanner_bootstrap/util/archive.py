"""
Archive extraction with path-traversal (zip-slip) protection.

Provisioned JREs are published as zip (Windows) or tar.gz (Unix) archives.
Every entry is checked before anything is written: an entry whose resolved
path (following symlinks extracted earlier) escapes the target directory
aborts the extraction immediately.
"""

import os
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path
from typing import Union

from ..errors import ScannerBootstrapError

PathLike = Union[str, Path]


class ArchiveError(ScannerBootstrapError):
    """Raised when an archive cannot be extracted"""
    pass


class ZipSlipError(ArchiveError):
    """Raised when an archive entry would be written outside the target directory"""

    def __init__(self, entry_name: str):
        super().__init__(
            f"Extracting an entry outside the target directory is not allowed: {entry_name}"
        )
        self.entry_name = entry_name


def _is_within(path: Path, directory: Path) -> bool:
    return path == directory or directory in path.parents


def _resolve_inside(target_dir: Path, entry_name: str) -> Path:
    """
    Return the destination of an entry, or raise if it escapes target_dir.

    The parent directory is resolved on disk, so symlinks extracted by earlier
    entries are followed before the check.
    """
    real_target = Path(os.path.realpath(target_dir))
    destination = Path(os.path.normpath(os.path.join(real_target, entry_name)))
    if not _is_within(destination, real_target):
        raise ZipSlipError(entry_name)
    if destination == real_target:
        return destination
    real_parent = Path(os.path.realpath(destination.parent))
    if not _is_within(real_parent, real_target):
        raise ZipSlipError(entry_name)
    return real_parent / destination.name


def _check_link_inside(target_dir: Path, destination: Path, member: tarfile.TarInfo):
    real_target = Path(os.path.realpath(target_dir))
    link_target = Path(os.path.realpath(os.path.join(destination.parent, member.linkname)))
    if not _is_within(link_target, real_target):
        raise ZipSlipError(member.name)


def _mkdirs(directory: Path):
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArchiveError(f"Error creating directory: {directory}") from e


def _apply_mode(path: Path, mode: int):
    """Best-effort permissions, mostly to keep the executable bit of JRE binaries"""
    mode = stat.S_IMODE(mode)
    if not mode:
        return
    try:
        os.chmod(path, mode)
    except OSError:
        pass


def extract_zip(archive_path: PathLike, target_dir: PathLike) -> Path:
    """
    Extract a zip archive into target_dir (created if needed).

    Args:
        archive_path: Zip file to extract
        target_dir: Destination directory

    Returns:
        The target directory

    Raises:
        ZipSlipError: If an entry escapes target_dir
        ArchiveError: If the archive is unreadable
    """
    target = Path(target_dir)
    _mkdirs(target)
    try:
        with zipfile.ZipFile(archive_path) as zip_file:
            for info in zip_file.infolist():
                destination = _resolve_inside(target, info.filename)
                if info.is_dir():
                    _mkdirs(destination)
                    continue
                _mkdirs(destination.parent)
                with zip_file.open(info) as source, open(destination, "wb") as out:
                    shutil.copyfileobj(source, out)
                # Unix permissions are stored in the high 16 bits
                _apply_mode(destination, info.external_attr >> 16)
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Invalid zip archive: {archive_path}") from e
    return target


def extract_tar_gz(archive_path: PathLike, target_dir: PathLike) -> Path:
    """
    Extract a gzipped tar archive into target_dir (created if needed).

    Regular files, directories and symlinks pointing inside target_dir are
    extracted; other special members (devices, fifos, hard links) are skipped.

    Raises:
        ZipSlipError: If an entry or a symlink target escapes target_dir
        ArchiveError: If the archive is unreadable
    """
    target = Path(target_dir)
    _mkdirs(target)
    try:
        with tarfile.open(archive_path, mode="r:gz") as tar:
            for member in tar:
                destination = _resolve_inside(target, member.name)
                if member.isdir():
                    _mkdirs(destination)
                elif member.isfile():
                    _mkdirs(destination.parent)
                    if destination.is_symlink():
                        destination.unlink()
                    source = tar.extractfile(member)
                    with source, open(destination, "wb") as out:
                        shutil.copyfileobj(source, out)
                    _apply_mode(destination, member.mode)
                elif member.issym():
                    _check_link_inside(target, destination, member)
                    _mkdirs(destination.parent)
                    if destination.is_symlink() or destination.exists():
                        destination.unlink()
                    os.symlink(member.linkname, destination)
    except (tarfile.TarError, EOFError) as e:
        raise ArchiveError(f"Invalid tar.gz archive: {archive_path}") from e
    return target


def extract_archive(archive_path: PathLike, target_dir: PathLike) -> Path:
    """
    Extract an archive, picking the format from its extension.

    Raises:
        ArchiveError: If the extension is neither zip nor gz/tgz
    """
    name = Path(archive_path).name
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if extension == "zip":
        return extract_zip(archive_path, target_dir)
    if extension in ("gz", "tgz"):
        return extract_tar_gz(archive_path, target_dir)
    raise ArchiveError(f"Unsupported compressed archive extension: {extension}")
