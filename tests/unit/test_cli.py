"""
Unit tests for the command line interface.

Run with: pytest tests/unit/test_cli.py -v
"""

import os
import time

import pytest
import structlog
from click.testing import CliRunner

from scanner_bootstrap import __version__, cli as cli_module
from scanner_bootstrap.cli import cli, load_properties_file, parse_defines
from scanner_bootstrap.errors import ConfigurationError, ProvisioningError


@pytest.fixture(autouse=True)
def reset_logging():
    """The CLI configures structlog globally"""
    yield
    structlog.reset_defaults()


@pytest.fixture
def recorded_runs(monkeypatch):
    runs = []

    async def fake_run_analysis(properties):
        runs.append(properties)
        return True

    monkeypatch.setattr(cli_module, "run_analysis", fake_run_analysis)
    return runs


class TestParsing:
    """Test suite for property parsing helpers"""

    def test_parse_defines(self):
        """Test key=value definitions, values may contain '='"""
        assert parse_defines(("sonar.projectKey=demo", "sonar.scanner.javaOpts=-Da=b", "empty=")) == {
            "sonar.projectKey": "demo",
            "sonar.scanner.javaOpts": "-Da=b",
            "empty": "",
        }

    @pytest.mark.parametrize("define", ["novalue", "=value", " =value"])
    def test_invalid_define(self, define):
        """Test definitions without a key are rejected"""
        with pytest.raises(ConfigurationError, match="expected key=value"):
            parse_defines((define,))

    def test_load_flat_and_nested_yaml(self, tmp_path):
        """Test nested mappings are flattened with dots"""
        config = tmp_path / "sonar-project.yml"
        config.write_text(
            "sonar.projectKey: demo\n"
            "sonar:\n"
            "  host:\n"
            "    url: https://sonar.example.com\n"
            "  scanner:\n"
            "    skipJreProvisioning: true\n"
            "  sources: [src, lib]\n"
            "  exclusions:\n"
        )

        assert load_properties_file(str(config)) == {
            "sonar.projectKey": "demo",
            "sonar.host.url": "https://sonar.example.com",
            "sonar.scanner.skipJreProvisioning": "true",
            "sonar.sources": "src,lib",
            "sonar.exclusions": "",
        }

    def test_empty_yaml(self, tmp_path):
        """Test an empty file gives no properties"""
        config = tmp_path / "empty.yml"
        config.write_text("")

        assert load_properties_file(str(config)) == {}

    def test_yaml_not_a_mapping(self, tmp_path):
        """Test a YAML list is rejected"""
        config = tmp_path / "list.yml"
        config.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_properties_file(str(config))


class TestScanCommand:
    """Test suite for the scan command"""

    def test_merge_order(self, tmp_path, recorded_runs):
        """Test options override the YAML file which overrides the environment"""
        config = tmp_path / "sonar.yml"
        config.write_text("sonar.token: from-yaml\nsonar.projectKey: yaml-key\n")

        result = CliRunner().invoke(
            cli,
            ["scan", "--config", str(config), "--token", "from-option", "--host-url", "http://sonar.local",
             "-D", "sonar.projectKey=define-key"],
            env={"SONAR_TOKEN": "from-env", "SONAR_SCANNER_JAVA_OPTS": "-Xmx1g"},
        )

        assert result.exit_code == 0, result.output
        properties = recorded_runs[0]
        assert properties["sonar.token"] == "from-option"
        assert properties["sonar.projectKey"] == "define-key"
        assert properties["sonar.host.url"] == "http://sonar.local"
        assert properties["sonar.scanner.javaOpts"] == "-Xmx1g"
        assert "Analysis successful" in result.output

    def test_skip(self, recorded_runs):
        """Test sonar.scanner.skip=true skips the analysis"""
        result = CliRunner().invoke(cli, ["scan", "-D", "sonar.scanner.skip=true"])

        assert result.exit_code == 0
        assert "skipped" in result.output
        assert recorded_runs == []

    def test_invalid_define(self, recorded_runs):
        """Test a malformed -D exits with the error code"""
        result = CliRunner().invoke(cli, ["scan", "-D", "novalue"])

        assert result.exit_code == 1
        assert "Invalid property definition" in result.output
        assert recorded_runs == []

    def test_bootstrap_error(self, monkeypatch):
        """Test bootstrap errors exit with the error code"""
        async def failing_run_analysis(properties):
            raise ProvisioningError("Failed to get server version")

        monkeypatch.setattr(cli_module, "run_analysis", failing_run_analysis)

        result = CliRunner().invoke(cli, ["scan", "--host-url", "http://sonar.local"])

        assert result.exit_code == 1
        assert "Failed to get server version" in result.output

    def test_failed_analysis(self, monkeypatch):
        """Test a failed analysis exits with its own code"""
        async def unsuccessful_run_analysis(properties):
            return False

        monkeypatch.setattr(cli_module, "run_analysis", unsuccessful_run_analysis)

        result = CliRunner().invoke(cli, ["scan", "--host-url", "http://sonar.local"])

        assert result.exit_code == 2
        assert "Analysis failed" in result.output


class TestOtherCommands:
    """Test suite for the sweep and version commands"""

    def test_sweep(self, tmp_path):
        """Test stale temp files are deleted from the user home cache"""
        tmp_dir = tmp_path / "cache" / "_tmp"
        tmp_dir.mkdir(parents=True)
        stale = tmp_dir / "engine.jar.part"
        stale.write_bytes(b"partial")
        old = time.time() - 3 * 24 * 3600
        os.utime(stale, (old, old))
        fresh = tmp_dir / "jre.zip.part"
        fresh.write_bytes(b"partial")

        result = CliRunner().invoke(cli, ["sweep", "--user-home", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Deleted 1 stale file(s)" in result.output
        assert not stale.exists()
        assert fresh.exists()

    def test_version_command(self):
        """Test the version command shows the platform table"""
        result = CliRunner().invoke(cli, ["version"])

        assert result.exit_code == 0, result.output
        assert f"scanner-bootstrap v{__version__}" in result.output
        assert "Python" in result.output

    def test_version_option(self):
        """Test --version"""
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
