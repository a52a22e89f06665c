"""
Shared pytest configuration.
"""

import sys
from pathlib import Path

# Add src to path for imports when the package is not installed
sys.path.insert(0, str(Path(__file__).parent / "src"))


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end tests using a local test server")
