"""
Logging setup for the release-radar command line.

Module loggers live under the ``release_radar`` namespace; this module only
attaches handlers to that root. Console records go to stderr so command output
on stdout stays machine-readable. A log file, when requested, receives every
record down to DEBUG.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "release_radar"

CONSOLE_FORMAT = "%(levelname_colored)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_logger: Optional[logging.Logger] = None


class ColoredFormatter(logging.Formatter):
    """Adds ``levelname_colored`` to records, ANSI-colored when enabled."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[34m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41;97m",
    }

    def __init__(self, fmt: str = CONSOLE_FORMAT, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        record.levelname_colored = f"{color}{record.levelname}\033[0m" if color else record.levelname
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
    propagate: bool = False,
) -> logging.Logger:
    """
    (Re)configure the ``release_radar`` logger.

    Args:
        level: Console level name when neither verbose nor quiet is set
        log_file: Optional path that also receives DEBUG records
        verbose: Console level DEBUG
        quiet: No console handler; the logger itself drops below WARNING
        propagate: Pass records on to the root logger (pytest's caplog needs this)
    """
    global _logger

    if verbose:
        console_level = logging.DEBUG
    elif quiet:
        console_level = logging.WARNING
    else:
        console_level = logging.getLevelName(level.upper())

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(console_level)
    logger.propagate = propagate
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not quiet:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ColoredFormatter(use_colors=sys.stderr.isatty()))
        logger.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
        if logger.handlers[0] is not file_handler:
            logger.handlers[0].setLevel(console_level)

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """The configured logger, set up with defaults on first use."""
    if _logger is None:
        return setup_logging()
    return _logger
