"""
scanner-bootstrap - Provision and launch the Sonar scanner engine

Command line interface.

Usage:
    scanner-bootstrap scan --host-url https://sonar.example.com -D sonar.projectKey=demo
    scanner-bootstrap scan --config sonar-project.yml --debug
    scanner-bootstrap version
"""

import asyncio
import platform
import sys
from typing import Dict, Optional, Tuple

import click
import yaml
from rich.console import Console
from rich.table import Table

from . import __version__
from .cache import DownloadCache, sweep_stale_temp_files
from .core import ScannerEngineBootstrapper, configure_logging, load_environment
from .core.bootstrapper import CACHE_DIR_NAME
from .errors import ConfigurationError, ScannerBootstrapError
from .properties import (
    HOST_URL,
    PROJECT_BASEDIR,
    SKIP,
    SONAR_TOKEN,
    SONAR_USER_HOME,
)
from .util import ArchResolver, OsResolver


APP_NAME = "scanner-bootstrap"
EXIT_ERROR = 1
EXIT_ANALYSIS_FAILED = 2

console = Console()


def parse_defines(defines: Tuple[str, ...]) -> Dict[str, str]:
    """Parse ``-D key=value`` options"""
    properties = {}
    for define in defines:
        key, sep, value = define.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"Invalid property definition '{define}', expected key=value")
        properties[key.strip()] = value
    return properties


def load_properties_file(path: str) -> Dict[str, str]:
    """
    Load properties from a YAML file.

    Nested mappings are flattened with dots, so both forms are accepted:

        sonar.host.url: https://sonar.example.com

        sonar:
          host:
            url: https://sonar.example.com
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Unable to read properties file {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Properties file {path} must contain a mapping")
    return _flatten(content)


def _flatten(content: dict, prefix: str = "") -> Dict[str, str]:
    properties = {}
    for key, value in content.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            properties.update(_flatten(value, f"{name}."))
        elif value is None:
            properties[name] = ""
        elif isinstance(value, bool):
            properties[name] = str(value).lower()
        elif isinstance(value, list):
            properties[name] = ",".join(str(item) for item in value)
        else:
            properties[name] = str(value)
    return properties


@click.group()
@click.version_option(version=__version__, prog_name=APP_NAME)
def cli():
    """
    scanner-bootstrap - Sonar scanner engine launcher

    Downloads the Java runtime and the scanner engine from the server and
    runs the analysis.
    """
    pass


@cli.command()
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False), help='YAML properties file')
@click.option('-D', '--define', 'defines', multiple=True, help='Property as key=value (repeatable)')
@click.option('--host-url', help='Server URL (sonar.host.url)')
@click.option('--token', help='Authentication token (sonar.token)')
@click.option('--project-dir', type=click.Path(file_okay=False), help='Project base directory (default: current directory)')
@click.option('--debug/--no-debug', default=False, help='Show debug output')
def scan(
    config_file: Optional[str],
    defines: Tuple[str, ...],
    host_url: Optional[str],
    token: Optional[str],
    project_dir: Optional[str],
    debug: bool,
):
    """
    Provision the scanner engine and run an analysis.

    Properties are merged in this order, later sources winning:
    1. Environment (SONAR_HOST_URL, SONAR_TOKEN, SONAR_SCANNER_*, ...)
    2. YAML properties file (--config)
    3. Command line options and -D definitions

    Example:
        scanner-bootstrap scan --host-url https://sonar.example.com -D sonar.projectKey=demo
    """
    configure_logging(debug)

    try:
        properties = load_environment()
        if config_file:
            properties.update(load_properties_file(config_file))
        if host_url:
            properties[HOST_URL] = host_url
        if token:
            properties[SONAR_TOKEN] = token
        if project_dir:
            properties[PROJECT_BASEDIR] = project_dir
        properties.update(parse_defines(defines))
    except ScannerBootstrapError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(EXIT_ERROR)

    if properties.get(SKIP, "").strip().lower() == "true":
        console.print("[yellow]Scanner analysis skipped[/yellow]")
        return

    try:
        succeeded = asyncio.run(run_analysis(properties))
    except KeyboardInterrupt:
        console.print("\n[yellow]Analysis interrupted by user[/yellow]")
        sys.exit(EXIT_ERROR)
    except ScannerBootstrapError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        if debug and e.__cause__ is not None:
            console.print(f"[dim]Caused by: {e.__cause__!r}[/dim]")
        sys.exit(EXIT_ERROR)

    if not succeeded:
        console.print("[bold red]Analysis failed[/bold red]")
        sys.exit(EXIT_ANALYSIS_FAILED)
    console.print("[bold green]Analysis successful[/bold green]")


async def run_analysis(properties: Dict[str, str]) -> bool:
    """
    Bootstrap the engine and run one analysis.

    Returns:
        True if the engine exited successfully
    """
    bootstrapper = ScannerEngineBootstrapper(APP_NAME, __version__).add_bootstrap_properties(properties)
    facade = await bootstrapper.bootstrap()
    async with facade:
        console.print(f"[green]Server:[/green] {facade.server_label}"
                      + (f" {facade.server_version}" if facade.server_version else ""))
        succeeded = await facade.analyze({})
        if facade.cache is not None:
            sweep_stale_temp_files(facade.cache)
    return succeeded


@cli.command()
@click.option('--user-home', type=click.Path(file_okay=False), help='Sonar user home (default: ~/.sonar)')
@click.option('--max-age-hours', default=24, type=float, help='Delete temp downloads older than this (default: 24)')
def sweep(user_home: Optional[str], max_age_hours: float):
    """Delete stale temporary downloads from the cache"""
    configure_logging(False)
    properties = load_environment()
    if user_home:
        properties[SONAR_USER_HOME] = user_home
    cache = DownloadCache(ScannerEngineBootstrapper.resolve_user_home(properties) / CACHE_DIR_NAME)
    deleted = sweep_stale_temp_files(cache, max_age_seconds=max_age_hours * 3600)
    console.print(f"[green]Deleted {deleted} stale file(s) from[/green] {cache.tmp_dir}")


@cli.command()
def version():
    """Show version and platform information"""
    console.print(f"\n[bold cyan]scanner-bootstrap v{__version__}[/bold cyan]\n")

    table = Table(title="Platform")
    table.add_column("Item", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    try:
        os_name = OsResolver().get_os().value
    except ConfigurationError:
        os_name = "[yellow]unknown[/yellow]"

    table.add_row("Python", platform.python_version())
    table.add_row("OS", os_name)
    table.add_row("Architecture", ArchResolver().get_cpu_arch())
    table.add_row("Sonar user home", str(ScannerEngineBootstrapper.resolve_user_home(load_environment())))

    console.print(table)
    console.print()
