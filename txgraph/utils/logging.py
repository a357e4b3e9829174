"""Logging helpers shared by the txgraph package and its scripts.

Library modules only ever call get_logger(__name__), so every logger they create
is a child of the package logger. Handlers are installed by configure_logging(),
which the command-line scripts call once at startup.
"""
import logging
import sys
from typing import Any, Mapping, Optional

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'

# Parent of every module logger in the package ('txgraph')
PACKAGE_LOGGER = __name__.split('.')[0]


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass __name__ so it nests under the package logger."""
    return logging.getLogger(name)


def set_verbosity(verbose: bool = True):
    """Show INFO messages (verbose) or only warnings and errors.

    The level is set on the root logger, its handlers and the package logger;
    module loggers leave their own level unset and inherit it.
    """
    level = logging.INFO if verbose else logging.WARNING

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        handler.setLevel(level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def configure_logging(verbose: bool = True, log_file: Optional[str] = None):
    """Send log records to stdout and, when log_file is given, to that file as well.

    Replaces any handlers already installed on the root logger.
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(format=LOG_FORMAT, handlers=handlers, force=True)
    set_verbosity(verbose)


def log_mapping(logger: logging.Logger, title: str, values: Mapping[str, Any], level: int = logging.INFO):
    """Log a title line followed by one indented line per key."""
    logger.log(level, title)
    for key, value in values.items():
        logger.log(level, f"  {key}: {value}")
