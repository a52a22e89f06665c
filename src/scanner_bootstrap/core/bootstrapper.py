"""
Scanner Engine Bootstrapper - Entry point of the library.

Collects bootstrap properties, fills defaults, resolves the endpoint, checks
the server version and returns a facade ready to run analyses.

Example:
    >>> facade = await (
    ...     ScannerEngineBootstrapper("my-scanner", "1.0")
    ...     .add_bootstrap_properties(load_environment())
    ...     .set_bootstrap_property("sonar.host.url", "https://sonar.example.com")
    ...     .bootstrap()
    ... )
    >>> async with facade:
    ...     succeeded = await facade.analyze({"sonar.projectKey": "demo"})
"""

import asyncio
import re
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import aiohttp
import structlog

from ..cache.download_cache import DownloadCache
from ..endpoint.resolver import Endpoint, resolve_endpoint
from ..errors import ProvisioningError, UnsupportedServerError
from ..http.client import HttpError, ScannerHttpClient
from ..http.config import HttpConfig
from ..launcher.engine_launcher import ScannerEngineLauncher, create_launcher
from ..properties import (
    API_BASE_URL,
    DUMP_TO_FILE,
    HOST_URL,
    SCANNER_APP,
    SCANNER_APP_VERSION,
    SCANNER_ARCH,
    SCANNER_OS,
    SONAR_USER_HOME,
)
from ..util.platform import ArchResolver, OsResolver
from .facade import BaseScannerEngineFacade, ScannerEngineFacade, SimulationFacade

SQ_VERSION_NEW_BOOTSTRAPPING = "10.6"
SCANNER_VERSION_SIMULATION = "sonar.scanner.internal.versionSimulation"
API_PATH_VERSION = "/analysis/version"
WEB_PATH_VERSION = "/api/server/version"
CACHE_DIR_NAME = "cache"

LauncherFactory = Callable[..., Awaitable[ScannerEngineLauncher]]


def parse_version(version: str) -> Tuple[int, ...]:
    """``10.6.0.1234-RC1`` -> (10, 6, 0, 1234); the qualifier is ignored"""
    numbers = re.split(r"[-+ ]", version.strip(), maxsplit=1)[0]
    parts = []
    for part in numbers.split("."):
        digits = re.match(r"\d+", part)
        parts.append(int(digits.group(0)) if digits else 0)
    return tuple(parts)


def is_at_least(version: str, minimum: str) -> bool:
    current = list(parse_version(version))
    expected = list(parse_version(minimum))
    size = max(len(current), len(expected))
    current += [0] * (size - len(current))
    expected += [0] * (size - len(expected))
    return current >= expected


class ScannerEngineBootstrapper:
    """
    Bootstrap the scanner engine.

    Properties are plain strings; later calls override earlier ones.
    """

    def __init__(
        self,
        app: str,
        version: str,
        launcher_factory: LauncherFactory = create_launcher,
        http_client_factory: Callable[[HttpConfig], ScannerHttpClient] = ScannerHttpClient,
        os_resolver: Optional[OsResolver] = None,
        arch_resolver: Optional[ArchResolver] = None,
        logger: Optional[Any] = None,
    ):
        """
        Initialize bootstrapper

        Args:
            app: Name of the scanner, sent in the User-Agent
            version: Version of the scanner
            launcher_factory: Builds the engine launcher (create_launcher)
            http_client_factory: Builds the HTTP client from its configuration
            os_resolver: OS detection (auto-detect if None)
            arch_resolver: CPU architecture detection (auto-detect if None)
            logger: structlog logger (module logger if None)
        """
        self.logger = logger or structlog.get_logger(__name__)
        self.launcher_factory = launcher_factory
        self.http_client_factory = http_client_factory
        self.os_resolver = os_resolver or OsResolver(logger=self.logger)
        self.arch_resolver = arch_resolver or ArchResolver(logger=self.logger)
        self.bootstrap_properties: Dict[str, str] = {}
        self.set_bootstrap_property(SCANNER_APP, app)
        self.set_bootstrap_property(SCANNER_APP_VERSION, version)

    def add_bootstrap_properties(self, properties: Mapping[str, str]) -> "ScannerEngineBootstrapper":
        self.bootstrap_properties.update(properties)
        return self

    def set_bootstrap_property(self, key: str, value: str) -> "ScannerEngineBootstrapper":
        self.bootstrap_properties[key] = value
        return self

    async def bootstrap(self) -> BaseScannerEngineFacade:
        """
        Resolve the environment and provision the engine.

        Returns:
            A facade; SimulationFacade when ``sonar.scanner.dumpToFile`` is set

        Raises:
            ConfigurationError: On invalid properties
            ProvisioningError: If the server cannot be reached or provisioning fails
            UnsupportedServerError: If the server is older than 10.6
        """
        endpoint = self._init_defaults()
        properties = dict(self.bootstrap_properties)
        is_simulation = DUMP_TO_FILE in properties
        cache = DownloadCache(self.resolve_user_home(properties) / CACHE_DIR_NAME, logger=self.logger)
        http_client = self.http_client_factory(HttpConfig.from_properties(properties, self.logger))

        try:
            server_version = None
            if not endpoint.is_cloud:
                if is_simulation:
                    server_version = properties.get(SCANNER_VERSION_SIMULATION, SQ_VERSION_NEW_BOOTSTRAPPING)
                else:
                    server_version = await self._get_server_version(http_client)
                self.logger.info("server_version", version=server_version)

            if is_simulation:
                return SimulationFacade(properties, endpoint, server_version, http_client, cache, self.logger)

            if server_version is not None and not is_at_least(server_version, SQ_VERSION_NEW_BOOTSTRAPPING):
                raise UnsupportedServerError(
                    f"SonarQube server {server_version} is not supported, "
                    f"version {SQ_VERSION_NEW_BOOTSTRAPPING} or later is required"
                )

            launcher = await self.launcher_factory(http_client, cache, properties, logger=self.logger)
        except BaseException:
            await http_client.close()
            raise

        return ScannerEngineFacade(properties, launcher, endpoint, server_version, http_client, cache, self.logger)

    def _init_defaults(self) -> Endpoint:
        endpoint = resolve_endpoint(self.bootstrap_properties)
        self.bootstrap_properties[HOST_URL] = endpoint.web_endpoint
        self.bootstrap_properties[API_BASE_URL] = endpoint.api_endpoint
        if endpoint.region_label:
            self.logger.info("cloud_region", region=endpoint.region_label)
        if SCANNER_OS not in self.bootstrap_properties:
            self.bootstrap_properties[SCANNER_OS] = self.os_resolver.get_os().value
        if SCANNER_ARCH not in self.bootstrap_properties:
            self.bootstrap_properties[SCANNER_ARCH] = self.arch_resolver.get_cpu_arch()
        return endpoint

    @staticmethod
    def resolve_user_home(properties: Mapping[str, str]) -> Path:
        """``sonar.userHome``, else ``~/.sonar``"""
        if properties.get(SONAR_USER_HOME):
            return Path(properties[SONAR_USER_HOME])
        return (Path.home() / ".sonar").absolute()

    async def _get_server_version(self, http_client: ScannerHttpClient) -> str:
        try:
            return (await http_client.call_rest_api(API_PATH_VERSION)).strip()
        except (HttpError, aiohttp.ClientError, asyncio.TimeoutError, OSError) as first_error:
            self.logger.debug("server_version_rest_failed", error=str(first_error))
            try:
                return (await http_client.call_web_api(WEB_PATH_VERSION)).strip()
            except (HttpError, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                self.logger.debug("server_version_web_failed", error=str(e))
                raise ProvisioningError("Failed to get server version") from first_error
