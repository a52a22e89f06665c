"""
File hashes - Digest computation for downloaded artifacts.

Algorithm names are accepted in the usual spelling of artifact metadata
("SHA-256", "MD5") as well as hashlib names ("sha256").
"""

import hashlib
from pathlib import Path
from typing import BinaryIO, Union

from ..errors import ScannerBootstrapError

CHUNK_SIZE = 64 * 1024

HashSource = Union[str, Path, BinaryIO]


class HashComputationError(ScannerBootstrapError):
    """Raised when a digest cannot be computed"""
    pass


def _new_hasher(algorithm: str):
    name = algorithm.strip().lower().replace("-", "_")
    # "sha_256" -> "sha256", while "sha3_256" is kept as is
    candidates = [name] if name in hashlib.algorithms_available else [name, name.replace("_", "")]
    hasher = None
    for candidate in candidates:
        try:
            hasher = hashlib.new(candidate)
            break
        except (ValueError, TypeError):
            continue
    if hasher is None:
        raise HashComputationError(f"Unsupported hash algorithm: {algorithm}")
    if hasher.name.startswith("shake"):
        # variable-length digests have no fixed output width
        raise HashComputationError(f"Unsupported hash algorithm: {algorithm}")
    return hasher


def digest(source: HashSource, algorithm: str) -> str:
    """
    Compute the digest of a file or a binary stream.

    Args:
        source: Path of a file, or an open binary stream. Streams are closed
            once consumed, whether hashing succeeds or not.
        algorithm: Hash algorithm name (e.g. "SHA-256", "MD5")

    Returns:
        Lowercase hexadecimal digest

    Raises:
        HashComputationError: On any I/O error or unknown algorithm
    """
    if isinstance(source, (str, Path)):
        try:
            stream = open(source, "rb")
        except OSError as e:
            raise HashComputationError(f"Fail to compute hash of: {source}") from e
    else:
        stream = source

    with stream:
        hasher = _new_hasher(algorithm)
        try:
            for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
                hasher.update(chunk)
        except (OSError, ValueError) as e:
            raise HashComputationError(f"Fail to compute hash of: {source}") from e

    return hasher.hexdigest()
