# %% -*- coding: utf-8 -*-
"""
Logger setup for command line sessions. Library modules only ever call
logging.getLogger(__name__); handlers are attached here, on the 'cd3field' logger, so that
solver passes, file loads and merges all report through one place.
"""

import logging
import sys

PACKAGE_LOGGER = 'cd3field'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%H:%M:%S'

def _attach(logger: logging.Logger, handler: logging.Handler, level: int):
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """
    Routes cd3field log records to stdout and optionally to a file.

    Calling this again replaces the handlers from the previous call rather than adding more.

    Parameters
    ----------
    level : int
        Threshold for both the logger and its handlers, e.g. logging.DEBUG to see per-axis
        header dumps.
    log_file : str, optional
        File to write a copy of the log to. It is truncated on each call.

    Returns
    -------
    The configured 'cd3field' logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    _attach(logger, logging.StreamHandler(sys.stdout), level)
    if log_file:
        _attach(logger, logging.FileHandler(log_file, mode='w', encoding='utf-8'), level)

    logger.info('Logging at level %s%s', logging.getLevelName(level),
                f', copy in {log_file}' if log_file else '')
    return logger
