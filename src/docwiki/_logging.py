"""Logging configuration for docwiki.

Usage in other modules:
    import logging
    log = logging.getLogger(__name__)

    log.debug("Path resolution and cache decisions")
    log.info("Content created, updated, moved or deleted")
    log.warning("Unreadable files skipped during a scan")
    log.error("Filesystem failures surfaced as OPERATION_FAILED")

The level comes from the DOCWIKI_LOG_LEVEL environment variable when set,
otherwise from the caller: the API server defaults to INFO, the CLI to
WARNING so that command output stays clean.
"""

import logging
import os
import sys

PACKAGE_LOGGER = "docwiki"


class _StderrHandler(logging.StreamHandler):
    """Handler bound to whatever ``sys.stderr`` is at emit time."""

    def __init__(self, level: int = logging.NOTSET) -> None:
        logging.Handler.__init__(self, level)

    @property
    def stream(self):
        return sys.stderr


def _env_level(default: str) -> int:
    level_name = os.environ.get("DOCWIKI_LOG_LEVEL", default).upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logging(default_level: str = "INFO") -> None:
    """Configure the docwiki package logger.

    Call this once at application startup (cli.py or webapp/api.py).
    Later calls only adjust the level.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    level = _env_level(default_level)

    if not logger.handlers:
        handler = _StderrHandler()
        handler.setFormatter(
            logging.Formatter(
                fmt="[%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
        # No duplicates through the root logger
        logger.propagate = False

    logger.setLevel(level)


def set_verbose(verbose: bool) -> None:
    """Show INFO messages (or hide them again) regardless of the configured level."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.INFO if verbose else _env_level("WARNING"))
