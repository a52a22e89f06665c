"""
Unit tests for platform module.

Run with: pytest tests/unit/test_platform.py -v
"""

import subprocess
from pathlib import Path

import pytest
from scanner_bootstrap.errors import ConfigurationError
from scanner_bootstrap.util.platform import (
    ArchResolver,
    OperatingSystem,
    OsResolver,
    find_java_in_path,
    is_windows,
    java_executable_name,
)


def fake_runner(stdout="", returncode=0):
    calls = []

    def runner(command):
        calls.append(list(command))
        return subprocess.CompletedProcess(command, returncode, stdout=stdout, stderr="")

    runner.calls = calls
    return runner


class TestOsResolver:
    """Test suite for OsResolver class"""

    @pytest.mark.parametrize("system_name,expected", [
        ("Darwin", OperatingSystem.MACOS),
        ("Windows", OperatingSystem.WINDOWS),
        ("z/OS", OperatingSystem.ZOS),
    ])
    def test_detects_os(self, system_name, expected):
        """Test OS detection from the platform name"""
        assert OsResolver(system_name=system_name, os_release_files=()).get_os() == expected

    def test_linux(self, tmp_path):
        """Test plain Linux when os-release is not Alpine"""
        release = tmp_path / "os-release"
        release.write_text('NAME="Ubuntu"\nID=ubuntu\n')

        assert OsResolver(system_name="Linux", os_release_files=[release]).get_os() == OperatingSystem.LINUX

    def test_alpine(self, tmp_path):
        """Test Alpine is detected from os-release"""
        release = tmp_path / "os-release"
        release.write_text('NAME="Alpine Linux"\nID=alpine\n')

        assert OsResolver(system_name="Linux", os_release_files=[release]).get_os() == OperatingSystem.ALPINE

    def test_missing_os_release(self, tmp_path):
        """Test unreadable os-release means plain Linux"""
        resolver = OsResolver(system_name="Linux", os_release_files=[tmp_path / "missing"])

        assert resolver.get_os() == OperatingSystem.LINUX

    def test_unknown_os(self):
        """Test unknown OS names the override property"""
        with pytest.raises(ConfigurationError, match="sonar.scanner.os"):
            OsResolver(system_name="Plan9", os_release_files=()).get_os()


class TestArchResolver:
    """Test suite for ArchResolver class"""

    def test_uname(self):
        """Test architecture comes from uname -m"""
        runner = fake_runner("aarch64\n")

        assert ArchResolver(use_uname=True, runner=runner).get_cpu_arch() == "aarch64"
        assert runner.calls == [["uname", "-m"]]

    def test_fallback_on_empty_output(self):
        """Test empty uname output falls back to the interpreter arch"""
        resolver = ArchResolver(use_uname=True, runner=fake_runner(""), fallback_arch="x86_64")

        assert resolver.get_cpu_arch() == "x86_64"

    def test_fallback_on_failure(self):
        """Test a failing uname falls back"""
        def broken(command):
            raise OSError("uname not found")

        resolver = ArchResolver(use_uname=True, runner=broken, fallback_arch="amd64")

        assert resolver.get_cpu_arch() == "amd64"

    def test_fallback_on_exit_code(self):
        """Test a non-zero exit falls back"""
        resolver = ArchResolver(use_uname=True, runner=fake_runner("x", returncode=1), fallback_arch="arm64")

        assert resolver.get_cpu_arch() == "arm64"

    def test_no_uname(self):
        """Test uname is not called when disabled"""
        runner = fake_runner("aarch64")

        assert ArchResolver(use_uname=False, runner=runner, fallback_arch="x86").get_cpu_arch() == "x86"
        assert runner.calls == []


class TestJavaLookup:
    """Test suite for java executable lookup helpers"""

    def test_executable_name(self):
        """Test executable name per OS"""
        assert java_executable_name(True) == "java.exe"
        assert java_executable_name(False) == "java"

    def test_is_windows(self):
        """Test Windows detection from a system name"""
        assert is_windows("Windows")
        assert not is_windows("Linux")

    def test_unix_uses_bare_name(self):
        """Test the bare name is returned outside Windows"""
        assert find_java_in_path(windows=False) == Path("java")

    def test_windows_uses_where(self):
        """Test where.exe output is used on Windows"""
        runner = fake_runner("C:\\jdk\\bin\\java.exe\r\nC:\\other\\java.exe\r\n")

        java = find_java_in_path(windows=True, runner=runner)

        assert java == Path("C:\\jdk\\bin\\java.exe")
        assert runner.calls[0][1] == "$PATH:java.exe"

    def test_windows_not_found(self):
        """Test where.exe failure raises ConfigurationError"""
        with pytest.raises(ConfigurationError, match="Cannot find java executable in PATH"):
            find_java_in_path(windows=True, runner=fake_runner("", returncode=1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
