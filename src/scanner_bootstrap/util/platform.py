"""
Platform detection used to pick the JRE matching the current machine.

The OS is derived from the platform name (with Alpine detected from
os-release). The CPU architecture is probed with ``uname -m`` on Unix because
``platform.machine()`` reports what the interpreter was built for, which can
differ from the OS (e.g. an x86_64 Python under Rosetta on arm64 macOS).
"""

import os
import platform
import re
import subprocess
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

import structlog

from ..properties import SCANNER_OS
from ..errors import ConfigurationError

OS_RELEASE_FILES = (Path("/etc/os-release"), Path("/usr/lib/os-release"))
WHERE_EXE = "C:\\Windows\\System32\\where.exe"

CommandRunner = Callable[[Sequence[str]], subprocess.CompletedProcess]


class OperatingSystem(Enum):
    """Operating systems supported by the JRE provisioning"""
    LINUX = "linux"
    WINDOWS = "windows"
    MACOS = "macos"
    ALPINE = "alpine"
    ZOS = "zos"


def _run_command(command: Sequence[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        list(command),
        capture_output=True,
        text=True,
        timeout=10,
        check=False,
    )


def is_windows(system_name: Optional[str] = None) -> bool:
    return (system_name or platform.system()).lower().startswith("win")


class OsResolver:
    """Resolves the operating system name sent to the JRE metadata endpoint"""

    def __init__(
        self,
        system_name: Optional[str] = None,
        os_release_files: Sequence[Path] = OS_RELEASE_FILES,
        logger: Optional[Any] = None,
    ):
        self.system_name = system_name if system_name is not None else platform.system()
        self.os_release_files = os_release_files
        self.logger = logger or structlog.get_logger(__name__)

    def get_os(self) -> OperatingSystem:
        """
        Detect the current operating system.

        Raises:
            ConfigurationError: If the OS is unknown (set sonar.scanner.os manually)
        """
        name = self.system_name.lower()
        if "mac" in name or "darwin" in name:
            return OperatingSystem.MACOS
        if "win" in name:
            return OperatingSystem.WINDOWS
        if "linux" in name:
            return OperatingSystem.ALPINE if self._is_alpine() else OperatingSystem.LINUX
        if "z/os" in name or name == "os/390":
            return OperatingSystem.ZOS
        raise ConfigurationError(
            f"Failed to detect OS, use the property '{SCANNER_OS}' to set it manually."
        )

    def _is_alpine(self) -> bool:
        for release_file in self.os_release_files:
            try:
                content = Path(release_file).read_text(encoding="utf-8")
            except OSError as e:
                self.logger.debug("os_release_unreadable", file=str(release_file), error=str(e))
                continue
            return any(re.fullmatch(r"ID=alpine", line.strip()) for line in content.splitlines())
        return False


class ArchResolver:
    """Resolves the CPU architecture sent to the JRE metadata endpoint"""

    def __init__(
        self,
        use_uname: Optional[bool] = None,
        runner: Optional[CommandRunner] = None,
        fallback_arch: Optional[str] = None,
        logger: Optional[Any] = None,
    ):
        self.use_uname = use_uname if use_uname is not None else os.name == "posix"
        self.runner = runner or _run_command
        self.fallback_arch = fallback_arch
        self.logger = logger or structlog.get_logger(__name__)

    def get_cpu_arch(self) -> str:
        arch = self._arch_from_uname() if self.use_uname else None
        if arch:
            return arch
        fallback = self.fallback_arch or platform.machine()
        self.logger.debug("arch_fallback", arch=fallback)
        return fallback

    def _arch_from_uname(self) -> Optional[str]:
        try:
            result = self.runner(["uname", "-m"])
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.debug("uname_failed", error=str(e))
            return None

        lines = (result.stdout or "").strip().splitlines()
        if result.returncode != 0 or not lines:
            self.logger.debug("uname_no_output", exit_code=result.returncode)
            return None

        arch = lines[0].strip()
        self.logger.debug("uname_arch", arch=arch)
        return arch or None


def java_executable_name(windows: bool) -> str:
    return "java.exe" if windows else "java"


def find_java_in_path(
    windows: Optional[bool] = None,
    runner: Optional[CommandRunner] = None,
    logger: Optional[Any] = None,
) -> Path:
    """
    Locate the java executable available on the PATH.

    On Windows, ``where.exe $PATH:java.exe`` is used so that the current
    directory is not searched. Elsewhere the bare name is returned and the
    OS resolves it at launch time.
    """
    windows = is_windows() if windows is None else windows
    java_exe = java_executable_name(windows)
    if not windows:
        return Path(java_exe)

    logger = logger or structlog.get_logger(__name__)
    runner = runner or _run_command
    command: List[str] = [WHERE_EXE, f"$PATH:{java_exe}"]
    try:
        result = runner(command)
    except (OSError, subprocess.SubprocessError) as e:
        raise ConfigurationError("Cannot find java executable in PATH") from e

    lines = (result.stdout or "").strip().splitlines()
    if result.returncode != 0 or not lines:
        raise ConfigurationError(
            f"Cannot find java executable in PATH (where.exe exited with code {result.returncode})"
        )

    java_path = Path(lines[0].strip())
    logger.debug("java_found_in_path", path=str(java_path))
    return java_path
