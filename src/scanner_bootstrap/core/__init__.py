"""
Core module - Bootstrapping, environment loading and analysis facades.
"""

from .bootstrapper import (
    SQ_VERSION_NEW_BOOTSTRAPPING,
    ScannerEngineBootstrapper,
    is_at_least,
    parse_version,
)
from .environment import env_to_property_key, load_environment
from .facade import (
    BaseScannerEngineFacade,
    ScannerEngineFacade,
    SimulationFacade,
    init_dirs,
)
from .logging_setup import configure_logging


__all__ = [
    # Bootstrap
    "ScannerEngineBootstrapper",
    "SQ_VERSION_NEW_BOOTSTRAPPING",
    "parse_version",
    "is_at_least",
    # Facades
    "BaseScannerEngineFacade",
    "ScannerEngineFacade",
    "SimulationFacade",
    "init_dirs",
    # Environment
    "load_environment",
    "env_to_property_key",
    # Logging
    "configure_logging",
]
