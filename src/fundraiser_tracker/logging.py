import logging
import os
import sys
from typing import List

LOGGER_PREFIX = "fundraiser"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level_from_env() -> int:
    name = (os.environ.get("LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Return the ``fundraiser.<name>`` logger, writing to stderr.

    LOG_LEVEL picks the level (default INFO) and LOG_FILE adds an appending
    file handler. stdout is left to the CLI's JSON and table output. A logger
    that already has handlers is returned as is.
    """
    logger = logging.getLogger(f"{LOGGER_PREFIX}.{name}")
    if logger.handlers:
        return logger

    level = _level_from_env()
    logger.setLevel(level)
    logger.propagate = False

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    log_file = os.environ.get("LOG_FILE")
    file_error = None
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as exc:
            file_error = exc

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if file_error is not None:
        logger.warning("LOG_FILE %s could not be opened (%s); logging to stderr only", log_file, file_error)
    return logger
