"""
Unit tests for hashes module.

Run with: pytest tests/unit/test_hashes.py -v
"""

import hashlib
import io

import pytest
from scanner_bootstrap.cache.hashes import HashComputationError, digest


class _FailingStream(io.BytesIO):
    """Stream raising on read, recording whether it was closed"""

    def read(self, *args):
        raise OSError("disk error")


class TestDigest:
    """Test suite for digest()"""

    @pytest.mark.parametrize("data", [b"", b"hello", bytes(range(256)) * 1000])
    @pytest.mark.parametrize("algorithm,reference", [("SHA-256", "sha256"), ("MD5", "md5"), ("sha1", "sha1")])
    def test_matches_hashlib(self, tmp_path, data, algorithm, reference):
        """Test digest of a file matches the hashlib reference"""
        file = tmp_path / "data.bin"
        file.write_bytes(data)

        assert digest(file, algorithm) == hashlib.new(reference, data).hexdigest()

    def test_stream_is_closed_after_success(self):
        """Test a stream source is consumed and closed"""
        stream = io.BytesIO(b"content")

        result = digest(stream, "SHA-256")

        assert result == hashlib.sha256(b"content").hexdigest()
        assert stream.closed

    def test_stream_is_closed_after_failure(self):
        """Test a failing stream is closed and the error wrapped"""
        stream = _FailingStream(b"content")

        with pytest.raises(HashComputationError) as exc_info:
            digest(stream, "SHA-256")

        assert stream.closed
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_missing_file(self, tmp_path):
        """Test missing file raises HashComputationError"""
        with pytest.raises(HashComputationError):
            digest(tmp_path / "missing.bin", "SHA-256")

    def test_unknown_algorithm(self, tmp_path):
        """Test unknown algorithm raises HashComputationError"""
        file = tmp_path / "data.bin"
        file.write_bytes(b"data")

        with pytest.raises(HashComputationError, match="Unsupported hash algorithm"):
            digest(file, "NOPE-1")

    def test_lowercase_full_width(self, tmp_path):
        """Test digest is lowercase hex of full width"""
        file = tmp_path / "data.bin"
        file.write_bytes(b"\x00")

        result = digest(file, "SHA-256")

        assert len(result) == 64
        assert result == result.lower()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
