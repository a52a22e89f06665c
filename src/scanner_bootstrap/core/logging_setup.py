"""
Logging setup for the command line.

Library code only calls ``structlog.get_logger``; the CLI decides how events
are rendered and which level is shown.
"""

import logging
import sys

import structlog


def configure_logging(debug: bool = False):
    """
    Configure structlog for console output.

    Args:
        debug: Show debug events (engine debug output included)
    """
    level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
