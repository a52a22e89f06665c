"""
Scanner Engine Facade - Run analyses with a bootstrapped engine.

Returned by ScannerEngineBootstrapper.bootstrap(). Two flavors:
- ScannerEngineFacade launches the engine in a Java subprocess
- SimulationFacade dumps the final properties to a file instead
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import structlog

from ..cache.download_cache import DownloadCache
from ..endpoint.resolver import Endpoint
from ..errors import ConfigurationError
from ..http.client import ScannerHttpClient
from ..launcher.engine_launcher import ScannerEngineLauncher
from ..properties import (
    DUMP_TO_FILE,
    PROJECT_BASEDIR,
    WAS_ENGINE_CACHE_HIT,
    WAS_JRE_CACHE_HIT,
    WORK_DIR,
)

DEFAULT_WORK_DIR = ".scannerwork"

SERVER_LABEL_CLOUD = "SonarQube Cloud"
SERVER_LABEL_SERVER = "SonarQube Server"
SERVER_LABEL_COMMUNITY = "SonarQube Community Build"


def init_dirs(properties: Dict[str, str], logger: Optional[Any] = None):
    """
    Normalize the project base directory and the work directory in place.

    Raises:
        ConfigurationError: If the project base directory does not exist
    """
    logger = logger or structlog.get_logger(__name__)
    base_dir_value = properties.get(PROJECT_BASEDIR) or ""
    base_dir = Path(os.path.normpath(os.path.abspath(base_dir_value or ".")))
    if not base_dir.is_dir():
        raise ConfigurationError(f"Project home must be an existing directory: {base_dir_value}")
    properties[PROJECT_BASEDIR] = str(base_dir)

    work_dir_value = (properties.get(WORK_DIR) or "").strip()
    if not work_dir_value:
        work_dir = base_dir / DEFAULT_WORK_DIR
    else:
        work_dir = Path(work_dir_value)
        if not work_dir.is_absolute():
            work_dir = base_dir / work_dir
    normalized = os.path.normpath(str(work_dir))
    properties[WORK_DIR] = normalized
    logger.debug("work_directory", path=normalized)


def _major_version(version: str) -> int:
    head = version.split(".", 1)[0]
    digits = "".join(ch for ch in head if ch.isdigit())
    return int(digits) if digits else 0


class BaseScannerEngineFacade:
    """
    Common behavior of the facades.

    Owns the HTTP client created during bootstrap; close it with ``close()``
    or use the facade as an async context manager.
    """

    def __init__(
        self,
        bootstrap_properties: Mapping[str, str],
        endpoint: Endpoint,
        server_version: Optional[str],
        http_client: Optional[ScannerHttpClient] = None,
        cache: Optional[DownloadCache] = None,
        logger: Optional[Any] = None,
    ):
        self.bootstrap_properties = dict(bootstrap_properties)
        self.endpoint = endpoint
        self._server_version = server_version
        self.http_client = http_client
        self.cache = cache
        self.logger = logger or structlog.get_logger(__name__)

    @property
    def is_cloud(self) -> bool:
        return self.endpoint.is_cloud

    @property
    def server_version(self) -> Optional[str]:
        """Version of the server, None for cloud instances"""
        return None if self.is_cloud else self._server_version

    @property
    def server_label(self) -> str:
        if self.is_cloud:
            return SERVER_LABEL_CLOUD
        major = _major_version(self._server_version or "")
        # Community Build versions are year-based (24.x, 25.x)
        if major <= 10 or major >= 2025:
            return SERVER_LABEL_SERVER
        return SERVER_LABEL_COMMUNITY

    async def analyze(self, analysis_properties: Mapping[str, str]) -> bool:
        """
        Run an analysis.

        Args:
            analysis_properties: Properties of this analysis, overriding the
                bootstrap properties

        Returns:
            True if the analysis succeeded

        Raises:
            ConfigurationError: If the project base directory does not exist
        """
        all_properties: Dict[str, str] = dict(self.bootstrap_properties)
        all_properties.update(analysis_properties)
        init_dirs(all_properties, self.logger)
        all_properties.update(self.stats_properties())
        return await self._do_analyze(all_properties)

    def stats_properties(self) -> Dict[str, str]:
        return {}

    async def _do_analyze(self, properties: Dict[str, str]) -> bool:
        raise NotImplementedError

    async def close(self):
        if self.http_client is not None:
            await self.http_client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class ScannerEngineFacade(BaseScannerEngineFacade):
    """Facade running the engine in a Java subprocess"""

    def __init__(
        self,
        bootstrap_properties: Mapping[str, str],
        launcher: ScannerEngineLauncher,
        endpoint: Endpoint,
        server_version: Optional[str],
        http_client: Optional[ScannerHttpClient] = None,
        cache: Optional[DownloadCache] = None,
        logger: Optional[Any] = None,
    ):
        super().__init__(bootstrap_properties, endpoint, server_version, http_client, cache, logger)
        self.launcher = launcher

    def stats_properties(self) -> Dict[str, str]:
        return {
            WAS_JRE_CACHE_HIT: self.launcher.jre_cache_hit.name,
            WAS_ENGINE_CACHE_HIT: str(self.launcher.engine_cache_hit).lower(),
        }

    async def _do_analyze(self, properties: Dict[str, str]) -> bool:
        return await self.launcher.execute(properties)


class SimulationFacade(BaseScannerEngineFacade):
    """Facade writing the analysis properties to ``sonar.scanner.dumpToFile``"""

    def stats_properties(self) -> Dict[str, str]:
        return {WAS_ENGINE_CACHE_HIT: "false"}

    async def _do_analyze(self, properties: Dict[str, str]) -> bool:
        dump_file = Path(properties[DUMP_TO_FILE])
        lines = [f"{key}={properties[key]}" for key in sorted(properties)]
        try:
            dump_file.parent.mkdir(parents=True, exist_ok=True)
            dump_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Fail to export scanner properties to {dump_file}") from e
        self.logger.info("properties_dumped", file=str(dump_file), count=len(lines))
        return True
