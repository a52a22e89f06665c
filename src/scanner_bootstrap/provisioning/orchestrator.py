"""
Provisioning Orchestrator - Obtain a Java runtime and the scanner engine.

Combines the metadata API, the download cache and archive extraction into
ready-to-run local paths.

Java resolution order:
1. ``sonar.scanner.javaExePath`` when set
2. a JRE provisioned from the server, unless ``sonar.scanner.skipJreProvisioning``
3. ``$JAVA_HOME/bin/java``
4. ``java`` from the PATH
"""

import asyncio
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

import aiohttp
import structlog
from pydantic import ValidationError

from ..cache.download_cache import CachedFile, DownloadCache
from ..errors import ConfigurationError, ProvisioningError
from ..http.client import HttpError, ScannerHttpClient
from ..properties import (
    ENGINE_JAR_PATH,
    JAVA_EXECUTABLE_PATH,
    SCANNER_ARCH,
    SCANNER_OS,
    SKIP_JRE_PROVISIONING,
)
from ..util.platform import (
    ArchResolver,
    OsResolver,
    find_java_in_path,
    is_windows,
    java_executable_name,
)
from .artifacts import ArchivedArtifact, PlainArtifact
from .metadata import EngineMetadata, JreMetadata, ResourceMetadata, parse_engine, parse_jre_list

API_PATH_JRE = "/analysis/jres"
API_PATH_ENGINE = "/analysis/engine"

# Transport failures, surfaced as ProvisioningError
_TRANSPORT_ERRORS = (HttpError, aiohttp.ClientError, asyncio.TimeoutError, OSError)
_METADATA_ERRORS = _TRANSPORT_ERRORS + (ValidationError,)


class JreCacheHit(Enum):
    """How the Java runtime was obtained"""
    HIT = "hit"
    MISS = "miss"
    DISABLED = "disabled"


@dataclass(frozen=True)
class ResolvedJava:
    """A java executable and whether it came from the cache"""
    java_executable: Path
    jre_cache_hit: JreCacheHit


class ArtifactDownloader:
    """
    Downloader fetching artifact bytes for the cache.

    An explicit ``downloadUrl`` is fetched without authentication, otherwise
    the REST API byte endpoint is used.
    """

    def __init__(self, http_client: ScannerHttpClient, metadata: ResourceMetadata, rest_path: str):
        self.http_client = http_client
        self.metadata = metadata
        self.rest_path = rest_path

    async def download(self, filename: str, to_file: Path) -> None:
        try:
            if self.metadata.has_download_url():
                await self.http_client.download_from_external_url(self.metadata.download_url, to_file)
            else:
                await self.http_client.download_from_rest_api(self.rest_path, to_file)
        except (HttpError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProvisioningError(f"Failed to download {filename}: {e}") from e


class ProvisioningOrchestrator:
    """
    Provision the Java runtime and the scanner engine.

    Example:
        >>> orchestrator = ProvisioningOrchestrator(http_client, cache, properties)
        >>> java = await orchestrator.resolve_java()
        >>> engine = await orchestrator.provision_engine()
    """

    def __init__(
        self,
        http_client: ScannerHttpClient,
        cache: DownloadCache,
        properties: Mapping[str, str],
        environ: Optional[Mapping[str, str]] = None,
        windows: Optional[bool] = None,
        logger: Optional[Any] = None,
    ):
        """
        Initialize orchestrator

        Args:
            http_client: Client for the server REST API
            cache: Download cache shared by the artifacts
            properties: Bootstrap properties
            environ: Environment variables (os.environ if None)
            windows: Force the Windows flavor of the lookups (auto-detected if None)
            logger: structlog logger (module logger if None)
        """
        self.http_client = http_client
        self.cache = cache
        self.properties = properties
        self.environ = environ if environ is not None else os.environ
        self.windows = is_windows() if windows is None else windows
        self.logger = logger or structlog.get_logger(__name__)

    async def resolve_java(self) -> ResolvedJava:
        """
        Find the java executable to run the engine with.

        Raises:
            ConfigurationError: If sonar.scanner.javaExePath points nowhere
            ProvisioningError: If JRE metadata cannot be fetched
            HashMismatchError: If the downloaded JRE is corrupted
        """
        configured = self.properties.get(JAVA_EXECUTABLE_PATH)
        if configured:
            java_path = _existing_executable(configured)
            if java_path is None:
                raise ConfigurationError(
                    f"Java executable '{configured}' does not exist. "
                    f"Please check property '{JAVA_EXECUTABLE_PATH}'."
                )
            self.logger.info("java_configured", path=configured)
            return ResolvedJava(java_path, JreCacheHit.DISABLED)

        if _is_true(self.properties.get(SKIP_JRE_PROVISIONING)):
            self.logger.info("jre_provisioning_disabled")
        else:
            provisioned = await self.provision_jre()
            if provisioned is not None:
                return provisioned

        java_exe = java_executable_name(self.windows)
        java_home = self.environ.get("JAVA_HOME")
        if java_home:
            java_path = Path(java_home) / "bin" / java_exe
            if java_path.exists():
                self.logger.info("java_from_java_home", path=str(java_path))
                return ResolvedJava(java_path, JreCacheHit.DISABLED)

        self.logger.info("java_from_path")
        return ResolvedJava(find_java_in_path(self.windows, logger=self.logger), JreCacheHit.DISABLED)

    async def provision_jre(self) -> Optional[ResolvedJava]:
        """
        Download (or reuse) the JRE published by the server for this platform.

        Returns:
            The provisioned java executable, or None if the server has no JRE
            for this OS/architecture
        """
        os_name = self.properties.get(SCANNER_OS) or OsResolver(logger=self.logger).get_os().value
        arch = self.properties.get(SCANNER_ARCH) or ArchResolver(logger=self.logger).get_cpu_arch()
        self.logger.info("jre_provisioning", os=os_name, arch=arch)

        metadata = await self.fetch_jre_metadata(os_name, arch)
        if metadata is None:
            self.logger.info("jre_not_found", os=os_name, arch=arch)
            return None

        downloader = ArtifactDownloader(self.http_client, metadata, f"{API_PATH_JRE}/{metadata.id}")
        cached = await self.cache.get_or_download(
            metadata.filename, metadata.sha256, metadata.hash_algorithm, downloader
        )
        artifact = ArchivedArtifact(cached.path, metadata.java_path)
        java_path = artifact.resolve(self.logger)
        return ResolvedJava(java_path, JreCacheHit.HIT if cached.cache_hit else JreCacheHit.MISS)

    async def provision_engine(self) -> CachedFile:
        """
        Obtain the scanner engine jar.

        ``sonar.scanner.engineJarPath`` bypasses the server and the cache.

        Raises:
            ConfigurationError: If the configured jar does not exist
            ProvisioningError: If engine metadata cannot be fetched
            HashMismatchError: If the downloaded jar is corrupted
        """
        configured = self.properties.get(ENGINE_JAR_PATH)
        if configured:
            jar_path = Path(configured)
            if not jar_path.is_file():
                raise ConfigurationError(
                    f"Scanner Engine jar path '{configured}' does not exist. "
                    f"Please check property '{ENGINE_JAR_PATH}'."
                )
            self.logger.info("engine_configured", path=configured)
            return CachedFile(path=PlainArtifact(jar_path).resolve(), cache_hit=False)

        metadata = await self.fetch_engine_metadata()
        downloader = ArtifactDownloader(self.http_client, metadata, API_PATH_ENGINE)
        cached = await self.cache.get_or_download(
            metadata.filename, metadata.sha256, metadata.hash_algorithm, downloader
        )
        return CachedFile(path=PlainArtifact(cached.path).resolve(), cache_hit=cached.cache_hit)

    async def fetch_jre_metadata(self, os_name: str, arch: str) -> Optional[JreMetadata]:
        try:
            response = await self.http_client.call_rest_api(f"{API_PATH_JRE}?os={os_name}&arch={arch}")
            jres = parse_jre_list(response)
        except _METADATA_ERRORS as e:
            raise ProvisioningError(f"Failed to query JRE metadata: {e}") from e
        return jres[0] if jres else None

    async def fetch_engine_metadata(self) -> EngineMetadata:
        try:
            response = await self.http_client.call_rest_api(API_PATH_ENGINE)
            return parse_engine(response)
        except _METADATA_ERRORS as e:
            raise ProvisioningError(f"Failed to get scanner-engine metadata: {e}") from e


def _is_true(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() == "true"


def _existing_executable(value: str) -> Optional[Path]:
    path = Path(value)
    if path.is_file():
        return path
    found = shutil.which(value)
    return Path(found) if found else None
