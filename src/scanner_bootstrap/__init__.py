"""
scanner-bootstrap - Provision and launch the Sonar scanner engine

Resolves the server or cloud instance to talk to, downloads (and caches) a
Java runtime and the scanner engine by content hash, then runs the engine in
a supervised Java subprocess.
"""

__version__ = "1.0.0"
__author__ = "scanner-bootstrap Team"
__status__ = "Development"
