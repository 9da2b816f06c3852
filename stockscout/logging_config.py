"""Logging configuration helpers for the stockscout scraper."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_DIR = os.getenv("STOCKSCOUT_LOG_DIR", "logs")
LOG_FILE = os.path.join(LOG_DIR, "stockscout.log")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ROOT_NAMESPACE = "stockscout"


def _file_logging_enabled() -> bool:
    return os.getenv("STOCKSCOUT_LOG_FILE", "1").strip().lower() not in {"0", "false", "no", "off"}


def get_logger(name: str) -> logging.Logger:
    """Return a logger writing to the console and, unless disabled, ``logs/stockscout.log``."""

    logger = logging.getLogger(name)
    logger.setLevel(DEFAULT_LEVEL)
    logger.propagate = False

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    if _file_logging_enabled():
        os.makedirs(LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=1_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    return logger


def set_level(level: str) -> None:
    """Apply *level* to every stockscout logger created so far."""

    resolved = level.upper()
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not isinstance(candidate, logging.Logger):
            continue
        if name == ROOT_NAMESPACE or name.startswith(ROOT_NAMESPACE + "."):
            candidate.setLevel(resolved)
