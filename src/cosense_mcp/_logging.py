"""Logging setup for cosense-mcp.

Modules log through ``logging.getLogger(__name__)``; the entry points (the
``cosense`` CLI and the ``cosense-mcp`` server) call configure_logging() once.

Records go to stderr only, since the MCP stdio transport owns stdout.
COSENSE_LOG_LEVEL picks the threshold (DEBUG, INFO, WARNING, ERROR; default
INFO). ``cosense --quiet`` lowers output to errors.
"""

import logging
import os
import sys

PACKAGE_LOGGER = "cosense_mcp"

_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def _env_level() -> int:
    name = os.environ.get("COSENSE_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(quiet: bool = False) -> logging.Logger:
    """Attach the stderr handler to the package logger.

    Calling again only re-applies the level, so the CLI group can switch to
    quiet mode after the entry point has set logging up.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    level = logging.ERROR if quiet else _env_level()

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
    return logger
