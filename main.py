#!/usr/bin/env python3
"""
scanner-bootstrap - Provision and launch the Sonar scanner engine

Main entry point when running from a checkout.

Usage:
    python main.py scan --host-url https://sonar.example.com -D sonar.projectKey=demo
    python main.py version
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from scanner_bootstrap.cli import cli


if __name__ == '__main__':
    cli()
