"""
Launcher module - Scanner engine execution in a Java subprocess.
"""

from .engine_launcher import (
    ScannerEngineLauncher,
    build_json_properties,
    create_launcher,
    redact_sensitive_arguments,
)
from .java_runner import JavaRunner
from .process import (
    JRE_VERSION_ERROR,
    STREAM_LIMIT,
    LaunchResult,
    ProcessLauncher,
    ProcessLaunchError,
    ProcessState,
)


__all__ = [
    # Engine
    "ScannerEngineLauncher",
    "create_launcher",
    "build_json_properties",
    "redact_sensitive_arguments",
    # Java
    "JavaRunner",
    # Processes
    "ProcessLauncher",
    "ProcessState",
    "LaunchResult",
    "ProcessLaunchError",
    "JRE_VERSION_ERROR",
    "STREAM_LIMIT",
]
