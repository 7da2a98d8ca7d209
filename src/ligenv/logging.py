"""ligenv logging utilities."""

import sys
import warnings
from pathlib import Path

from loguru import logger

from .settings import get_settings

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> <level>{level}: {message}</level>"


def _showwarning(message, *args, **kwargs):
    logger.opt(depth=2).warning(message)


def setup_logging(logfile: Path | None = None, debug: bool | None = None):
    """Sends log messages to stderr and, when given, to `logfile` (overwritten).

    `debug` defaults to the `LIGENV_DEBUG` setting.
    """
    if debug is None:
        debug = get_settings().debug
    level = "DEBUG" if debug else "INFO"

    handlers = [dict(sink=sys.stderr, level=level, format=LOG_FORMAT, colorize=True)]
    if logfile is not None:
        handlers.append(dict(sink=logfile, level=level, format=LOG_FORMAT, colorize=False, mode="w"))
    logger.configure(handlers=handlers)

    # Python warnings (typically numpy runtime warnings) go through loguru as well.
    warnings.showwarning = _showwarning
