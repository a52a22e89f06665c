"""
Scanner Engine Launcher - Run the scanner engine jar in a Java subprocess.

The engine receives its properties as a single JSON document on stdin:

    {"scannerProperties": [{"key": "sonar.host.url", "value": "..."}, ...]}

and writes one JSON log record per stdout line:

    {"level": "INFO", "message": "...", "stacktrace": "..."}

Records are re-logged at their own level; lines that are not JSON are logged
as plain ``[stdout]`` output.
"""

import json
from typing import Any, Dict, List, Mapping, Optional

import structlog

from ..cache.download_cache import CachedFile, DownloadCache
from ..http.client import ScannerHttpClient
from ..properties import SCANNER_JAVA_OPTS
from ..provisioning.orchestrator import JreCacheHit, ProvisioningOrchestrator
from .java_runner import JavaRunner
from .process import LaunchResult

BC_IGNORE_USELESS_PASSWD = "org.bouncycastle.pkcs12.ignore_useless_passwd"
SENSITIVE_JVM_ARGUMENTS = ("sonar.login", "password", "token")
JSON_FIELD_SCANNER_PROPERTIES = "scannerProperties"

_LEVELS = {
    "ERROR": "error",
    "WARN": "warning",
    "INFO": "info",
    "DEBUG": "debug",
    "TRACE": "debug",
}


class ScannerEngineLauncher:
    """
    Launch the scanner engine with a set of analysis properties.

    Example:
        >>> launcher = await create_launcher(http_client, cache, properties)
        >>> succeeded = await launcher.execute(properties)
    """

    def __init__(self, java_runner: JavaRunner, engine_jar: CachedFile, logger: Optional[Any] = None):
        self.java_runner = java_runner
        self.engine_jar = engine_jar
        self.logger = logger or structlog.get_logger(__name__)

    @property
    def jre_cache_hit(self) -> JreCacheHit:
        return self.java_runner.jre_cache_hit

    @property
    def engine_cache_hit(self) -> bool:
        return self.engine_jar.cache_hit

    async def execute(self, properties: Mapping[str, Optional[str]]) -> bool:
        result = await self.run(properties)
        return result.succeeded

    async def run(self, properties: Mapping[str, Optional[str]]) -> LaunchResult:
        return await self.java_runner.run(
            self.build_args(properties),
            build_json_properties(properties),
            self.log_engine_output,
        )

    def build_args(self, properties: Mapping[str, Optional[str]]) -> List[str]:
        """JVM options, then the engine jar"""
        args: List[str] = []
        java_opts = properties.get(SCANNER_JAVA_OPTS)
        if java_opts:
            split = java_opts.split()
            self.logger.info(
                "scanner_java_opts",
                message=f"SONAR_SCANNER_JAVA_OPTS={redact_sensitive_arguments(split)}",
            )
            args.extend(split)
        args.append(f"-D{BC_IGNORE_USELESS_PASSWD}=true")
        args.append("-jar")
        args.append(str(self.engine_jar.path.absolute()))
        return args

    def log_engine_output(self, line: str):
        """Re-log one stdout line of the engine"""
        record = _parse_log_record(line)
        if record is None:
            self.logger.info(f"[stdout] {line}")
            return

        message = record.get("message")
        stacktrace = record.get("stacktrace")
        text = "\n".join(part for part in (message, stacktrace) if part is not None)
        level = _LEVELS.get(str(record.get("level")).upper(), "info")
        getattr(self.logger, level)(text)

    def __repr__(self) -> str:
        """String representation"""
        return f"ScannerEngineLauncher(java={self.java_runner.java_executable}, engine={self.engine_jar.path})"


def _parse_log_record(line: str) -> Optional[Dict[str, Any]]:
    try:
        record = json.loads(line)
    except ValueError:
        return None
    if not isinstance(record, dict):
        return None
    return record


def redact_sensitive_arguments(arguments: List[str]) -> str:
    """Join JVM arguments, masking the value of credential-like ones"""
    return " ".join(_redact_argument(argument) for argument in arguments)


def _redact_argument(argument: str) -> str:
    name = argument.split("=", 1)[0]
    if any(sensitive in name.lower() for sensitive in SENSITIVE_JVM_ARGUMENTS):
        return f"{name}=*"
    return argument


def build_json_properties(properties: Mapping[str, Optional[str]]) -> str:
    """Serialize properties sorted by key, None values becoming empty strings"""
    entries = [
        {"key": key, "value": "" if value is None else value}
        for key, value in sorted(item for item in properties.items() if item[0] is not None)
    ]
    return json.dumps({JSON_FIELD_SCANNER_PROPERTIES: entries})


async def create_launcher(
    http_client: ScannerHttpClient,
    cache: DownloadCache,
    properties: Mapping[str, str],
    orchestrator: Optional[ProvisioningOrchestrator] = None,
    logger: Optional[Any] = None,
) -> ScannerEngineLauncher:
    """
    Provision Java and the engine, then build the launcher.

    A ``java --version`` call checks the runtime works before the engine is
    fetched; its output is logged at debug level.

    Raises:
        ConfigurationError: On invalid provisioning properties
        ProvisioningError: If metadata cannot be fetched
        HashMismatchError: If a downloaded artifact is corrupted
        ProcessLaunchError: If the java executable cannot be started
    """
    logger = logger or structlog.get_logger(__name__)
    orchestrator = orchestrator or ProvisioningOrchestrator(http_client, cache, properties, logger=logger)

    java = await orchestrator.resolve_java()
    java_runner = JavaRunner(java.java_executable, java.jre_cache_hit, logger=logger)
    await java_runner.execute(["--version"], stdout_sink=logger.debug)

    engine_jar = await orchestrator.provision_engine()
    return ScannerEngineLauncher(java_runner, engine_jar, logger=logger)
