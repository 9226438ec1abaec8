"""
Logging configuration for the exercise matcher.

Everything logs under the "exercise_matcher" logger; resolution components
use child loggers ("exercise_matcher.catalog", ...) so their records can be
filtered per stage while sharing one set of handlers.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from config.settings import settings

ROOT_LOGGER_NAME = "exercise_matcher"

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _handlers(name: str, log_dir: Optional[Path]) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    handlers: list[logging.Handler] = [console]

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        # Resolution traces (alias hits, per-stage scores) go to the file only
        file_handler = logging.FileHandler(log_dir / f"{name}.log")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    return handlers


def setup_logging(
    name: str = ROOT_LOGGER_NAME,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure a named logger once; later calls return it unchanged.

    Args:
        name: Logger name
        log_dir: Directory for the log file. Defaults to settings.LOG_DIR,
            or no file at all when settings.LOG_TO_FILE is off.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    if logger.handlers:
        return logger

    if log_dir is None and settings.LOG_TO_FILE:
        log_dir = Path(settings.LOG_DIR)

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)
    for handler in _handlers(name, log_dir):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Child logger for one resolution component."""
    return logger.getChild(component)


# Default logger
logger = setup_logging()
