"""
Unit tests for provisioning module.

Run with: pytest tests/unit/test_provisioning.py -v
"""

import hashlib
import io
import json
import tarfile
from pathlib import Path

import pytest
from scanner_bootstrap.cache import CacheError, DownloadCache, HashMismatchError
from scanner_bootstrap.errors import ConfigurationError, ProvisioningError
from scanner_bootstrap.http import HttpError
from scanner_bootstrap.provisioning import (
    ArchivedArtifact,
    EngineMetadata,
    JreCacheHit,
    JreMetadata,
    PlainArtifact,
    ProvisioningOrchestrator,
)
from scanner_bootstrap.provisioning.metadata import parse_jre_list


def make_jre_archive() -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        data = b"#!/bin/sh\n"
        info = tarfile.TarInfo("jdk-17/bin/java")
        info.size = len(data)
        info.mode = 0o755
        tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


JRE_BYTES = make_jre_archive()
ENGINE_BYTES = b"engine jar"


class FakeHttpClient:
    """In-memory stand-in for ScannerHttpClient"""

    def __init__(self, rest=None, files=None, external=None):
        self.rest = rest or {}
        self.files = files or {}
        self.external = external or {}
        self.rest_calls = []
        self.downloads = []

    async def call_rest_api(self, url_path):
        self.rest_calls.append(url_path)
        if url_path not in self.rest:
            raise HttpError("http://server/api/v2" + url_path, 404)
        return self.rest[url_path]

    async def download_from_rest_api(self, url_path, to_file):
        self.downloads.append(("rest", url_path))
        if url_path not in self.files:
            raise HttpError("http://server/api/v2" + url_path, 404)
        Path(to_file).write_bytes(self.files[url_path])

    async def download_from_external_url(self, url, to_file):
        self.downloads.append(("external", url))
        Path(to_file).write_bytes(self.external[url])


def jre_list(download_url=None, sha256=None):
    return json.dumps([{
        "id": "jre-17",
        "filename": "jre-17.tar.gz",
        "sha256": sha256 or hashlib.sha256(JRE_BYTES).hexdigest(),
        "javaPath": "jdk-17/bin/java",
        "os": "linux",
        "arch": "x64",
        "downloadUrl": download_url,
    }])


def engine_metadata(download_url=None):
    return json.dumps({
        "filename": "scanner-engine.jar",
        "sha256": hashlib.sha256(ENGINE_BYTES).hexdigest(),
        "downloadUrl": download_url,
    })


BASE_PROPERTIES = {"sonar.scanner.os": "linux", "sonar.scanner.arch": "x64"}
JRE_PATH = "/analysis/jres?os=linux&arch=x64"


class TestMetadata:
    """Test suite for metadata models"""

    def test_parse_jre_list(self):
        """Test JSON field names are mapped"""
        jres = parse_jre_list(jre_list(download_url="https://cdn/jre.tar.gz"))

        assert len(jres) == 1
        assert jres[0].id == "jre-17"
        assert jres[0].java_path == "jdk-17/bin/java"
        assert jres[0].download_url == "https://cdn/jre.tar.gz"
        assert jres[0].hash_algorithm == "SHA-256"

    def test_blank_download_url(self):
        """Test a blank downloadUrl means the REST endpoint"""
        metadata = EngineMetadata(filename="e.jar", sha256="abc", downloadUrl="  ")

        assert not metadata.has_download_url()


class TestArtifacts:
    """Test suite for PlainArtifact / ArchivedArtifact"""

    def test_plain_artifact(self, tmp_path):
        """Test a plain artifact resolves to itself"""
        assert PlainArtifact(tmp_path / "engine.jar").resolve() == tmp_path / "engine.jar"

    def test_archived_artifact_extracted_once(self, tmp_path):
        """Test extraction happens next to the archive, only once"""
        archive = tmp_path / "jre.tar.gz"
        archive.write_bytes(JRE_BYTES)
        artifact = ArchivedArtifact(archive, "jdk-17/bin/java")

        java = artifact.resolve()
        java.write_bytes(b"modified")
        again = artifact.resolve()

        assert java == tmp_path / "jre.tar.gz_extracted" / "jdk-17" / "bin" / "java"
        assert again.read_bytes() == b"modified"
        assert [p.name for p in tmp_path.iterdir() if p.name.startswith("jre") and p.is_dir()] == [
            "jre.tar.gz_extracted"
        ]


class TestProvisioningOrchestrator:
    """Test suite for ProvisioningOrchestrator class"""

    @pytest.mark.asyncio
    async def test_provisions_jre(self, tmp_path):
        """Test the JRE is downloaded, extracted, then reused from the cache"""
        http = FakeHttpClient(rest={JRE_PATH: jre_list()}, files={"/analysis/jres/jre-17": JRE_BYTES})
        orchestrator = ProvisioningOrchestrator(http, DownloadCache(tmp_path), BASE_PROPERTIES, environ={})

        first = await orchestrator.resolve_java()
        second = await orchestrator.resolve_java()

        assert first.jre_cache_hit == JreCacheHit.MISS
        assert second.jre_cache_hit == JreCacheHit.HIT
        assert first.java_executable == second.java_executable
        assert first.java_executable.name == "java"
        assert first.java_executable.parent.parent.parent.name == "jre-17.tar.gz_extracted"
        assert http.downloads == [("rest", "/analysis/jres/jre-17")]

    @pytest.mark.asyncio
    async def test_external_download_url(self, tmp_path):
        """Test downloadUrl takes precedence over the REST endpoint"""
        url = "https://cdn.example.com/jre-17.tar.gz"
        http = FakeHttpClient(rest={JRE_PATH: jre_list(download_url=url)}, external={url: JRE_BYTES})
        orchestrator = ProvisioningOrchestrator(http, DownloadCache(tmp_path), BASE_PROPERTIES, environ={})

        await orchestrator.resolve_java()

        assert http.downloads == [("external", url)]

    @pytest.mark.asyncio
    async def test_no_jre_falls_back_to_java_home(self, tmp_path):
        """Test an empty JRE list falls back to JAVA_HOME"""
        java_home = tmp_path / "jdk"
        (java_home / "bin").mkdir(parents=True)
        (java_home / "bin" / "java").write_text("")
        http = FakeHttpClient(rest={JRE_PATH: "[]"})
        orchestrator = ProvisioningOrchestrator(
            http, DownloadCache(tmp_path / "cache"), BASE_PROPERTIES,
            environ={"JAVA_HOME": str(java_home)}, windows=False,
        )

        java = await orchestrator.resolve_java()

        assert java.java_executable == java_home / "bin" / "java"
        assert java.jre_cache_hit == JreCacheHit.DISABLED

    @pytest.mark.asyncio
    async def test_skip_provisioning_uses_path(self, tmp_path):
        """Test skipJreProvisioning bypasses the server"""
        http = FakeHttpClient()
        properties = dict(BASE_PROPERTIES, **{"sonar.scanner.skipJreProvisioning": "true"})
        orchestrator = ProvisioningOrchestrator(http, DownloadCache(tmp_path), properties, environ={}, windows=False)

        java = await orchestrator.resolve_java()

        assert java.java_executable == Path("java")
        assert http.rest_calls == []

    @pytest.mark.asyncio
    async def test_configured_java(self, tmp_path):
        """Test javaExePath short-circuits provisioning"""
        java_exe = tmp_path / "java"
        java_exe.write_text("")
        http = FakeHttpClient()
        properties = dict(BASE_PROPERTIES, **{"sonar.scanner.javaExePath": str(java_exe)})
        orchestrator = ProvisioningOrchestrator(http, DownloadCache(tmp_path), properties, environ={})

        java = await orchestrator.resolve_java()

        assert java.java_executable == java_exe
        assert java.jre_cache_hit == JreCacheHit.DISABLED
        assert http.rest_calls == []

    @pytest.mark.asyncio
    async def test_configured_java_missing(self, tmp_path):
        """Test a missing javaExePath names the property"""
        properties = {"sonar.scanner.javaExePath": str(tmp_path / "nope" / "java")}
        orchestrator = ProvisioningOrchestrator(FakeHttpClient(), DownloadCache(tmp_path), properties, environ={})

        with pytest.raises(ConfigurationError, match="sonar.scanner.javaExePath"):
            await orchestrator.resolve_java()

    @pytest.mark.asyncio
    async def test_jre_metadata_failure(self, tmp_path):
        """Test a metadata failure raises ProvisioningError"""
        orchestrator = ProvisioningOrchestrator(FakeHttpClient(), DownloadCache(tmp_path), BASE_PROPERTIES, environ={})

        with pytest.raises(ProvisioningError, match="Failed to query JRE metadata"):
            await orchestrator.resolve_java()

    @pytest.mark.asyncio
    async def test_invalid_metadata(self, tmp_path):
        """Test malformed metadata raises ProvisioningError"""
        http = FakeHttpClient(rest={JRE_PATH: "{not json"})
        orchestrator = ProvisioningOrchestrator(http, DownloadCache(tmp_path), BASE_PROPERTIES, environ={})

        with pytest.raises(ProvisioningError):
            await orchestrator.resolve_java()

    @pytest.mark.asyncio
    async def test_jre_hash_mismatch_not_retried(self, tmp_path):
        """Test a corrupted JRE surfaces the integrity error after one download"""
        http = FakeHttpClient(
            rest={JRE_PATH: jre_list(sha256="0" * 64)},
            files={"/analysis/jres/jre-17": JRE_BYTES},
        )
        orchestrator = ProvisioningOrchestrator(http, DownloadCache(tmp_path), BASE_PROPERTIES, environ={})

        with pytest.raises(HashMismatchError):
            await orchestrator.resolve_java()

        assert len(http.downloads) == 1

    @pytest.mark.asyncio
    async def test_provision_engine(self, tmp_path):
        """Test the engine jar is cached by hash"""
        http = FakeHttpClient(rest={"/analysis/engine": engine_metadata()}, files={"/analysis/engine": ENGINE_BYTES})
        orchestrator = ProvisioningOrchestrator(http, DownloadCache(tmp_path), BASE_PROPERTIES, environ={})

        first = await orchestrator.provision_engine()
        second = await orchestrator.provision_engine()

        assert first.path == tmp_path / hashlib.sha256(ENGINE_BYTES).hexdigest() / "scanner-engine.jar"
        assert first.cache_hit is False
        assert second.cache_hit is True

    @pytest.mark.asyncio
    async def test_engine_download_failure(self, tmp_path):
        """Test a failed engine download is wrapped in CacheError"""
        http = FakeHttpClient(rest={"/analysis/engine": engine_metadata()})
        orchestrator = ProvisioningOrchestrator(http, DownloadCache(tmp_path), BASE_PROPERTIES, environ={})

        with pytest.raises(CacheError):
            await orchestrator.provision_engine()

    @pytest.mark.asyncio
    async def test_configured_engine_jar(self, tmp_path):
        """Test engineJarPath bypasses the server"""
        jar = tmp_path / "engine.jar"
        jar.write_bytes(ENGINE_BYTES)
        http = FakeHttpClient()
        properties = {"sonar.scanner.engineJarPath": str(jar)}
        orchestrator = ProvisioningOrchestrator(http, DownloadCache(tmp_path), properties, environ={})

        engine = await orchestrator.provision_engine()

        assert engine.path == jar
        assert http.rest_calls == []

    @pytest.mark.asyncio
    async def test_configured_engine_jar_missing(self, tmp_path):
        """Test a missing engineJarPath names the property"""
        properties = {"sonar.scanner.engineJarPath": str(tmp_path / "missing.jar")}
        orchestrator = ProvisioningOrchestrator(FakeHttpClient(), DownloadCache(tmp_path), properties, environ={})

        with pytest.raises(ConfigurationError) as exc_info:
            await orchestrator.provision_engine()

        assert str(exc_info.value) == (
            f"Scanner Engine jar path '{tmp_path / 'missing.jar'}' does not exist. "
            f"Please check property 'sonar.scanner.engineJarPath'."
        )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
