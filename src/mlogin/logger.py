"""
Logging setup for mlogin, built on loguru.

Diagnostics go to stderr with CRLF line endings so they stay readable while
the local terminal is in raw mode.
"""

import sys
from typing import Any

from loguru import logger

PROG_NAME = "mlogin"

CLI_FORMAT = PROG_NAME + ": {message}"
VERBOSE_FORMAT = (
    "{time:HH:mm:ss.SSS} [{level}] {extra[name]}: {message}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]} | {message}"

logger.configure(extra={"name": PROG_NAME})


def _stderr_sink(message: Any) -> None:
    sys.stderr.write(str(message).replace("\n", "\r\n"))
    sys.stderr.flush()


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """
    Replace loguru's default handler with the mlogin sinks.

    Args:
        level: Minimum level written to stderr. DEBUG switches to the
            verbose format, which includes timestamps and module names.
        log_file: Optional path that receives every record at DEBUG level.
    """
    level = level.upper()
    logger.remove()
    logger.add(
        _stderr_sink,
        level=level,
        format=VERBOSE_FORMAT if level == "DEBUG" else CLI_FORMAT,
        colorize=False,
        backtrace=False,
        diagnose=False,
    )
    if log_file:
        logger.add(log_file, level="DEBUG", format=FILE_FORMAT, rotation="10 MB")


def get_logger(name: str):
    """Return a logger bound to a module name."""
    return logger.bind(name=name)
