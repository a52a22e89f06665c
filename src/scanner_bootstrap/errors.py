"""
Errors shared across the bootstrap pipeline.

Component-specific errors (hash mismatches, zip-slip, launch failures) live
next to the code that raises them and derive from ScannerBootstrapError.
"""


class ScannerBootstrapError(Exception):
    """Base exception for all bootstrap errors"""
    pass


class ConfigurationError(ScannerBootstrapError):
    """
    Raised for user-fixable configuration problems.

    The message always names the offending property so the user can fix it.
    """
    pass


class ProvisioningError(ScannerBootstrapError):
    """Raised when the JRE or the scanner engine cannot be provisioned"""
    pass


class UnsupportedServerError(ScannerBootstrapError):
    """Raised when the server is too old to bootstrap the engine in a subprocess"""
    pass
