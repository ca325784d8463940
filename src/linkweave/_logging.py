"""Logging configuration for linkweave.

Usage in other modules:
    import logging
    log = logging.getLogger(__name__)

The log level can be configured via the LINKWEAVE_LOG_LEVEL environment
variable (DEBUG, INFO, WARNING, ERROR). The default is WARNING so that
interactive commands stay quiet unless something is skipped.
"""

import logging
import os
import sys

PACKAGE_LOGGER = "linkweave"


def configure_logging() -> None:
    """Configure logging for the linkweave package.

    Call this once at application startup. Subsequent calls are no-ops.
    """
    root_logger = logging.getLogger(PACKAGE_LOGGER)

    if root_logger.handlers:
        return

    level_name = os.environ.get("LINKWEAVE_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="[%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    # Avoid duplicate messages through the root logger
    root_logger.propagate = False


def set_quiet_mode(quiet: bool) -> None:
    """Only let errors through when quiet mode is on."""
    root_logger = logging.getLogger(PACKAGE_LOGGER)
    level = logging.ERROR if quiet else root_logger.level
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)
