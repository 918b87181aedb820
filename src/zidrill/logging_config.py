"""Logging configuration for the drill engine."""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Union

from zidrill.config import settings

PACKAGE_LOGGER = "zidrill"

# Per-module levels; the scheduler logs every decision at DEBUG
ENGINE_LOGGERS = {
    "zidrill.services.syllable_parser": logging.INFO,
    "zidrill.services.pronunciation_comparator": logging.INFO,
}

QUIET_LOGGERS = ("sqlalchemy.engine", "faker")


def setup_logging(level: Optional[Union[int, str]] = None) -> logging.Logger:
    """Configure the ``zidrill`` logger and return it.

    Handlers are attached to the package logger, not the root logger, so
    calling this twice does not duplicate output.
    """
    if level is None:
        level = settings.logging.level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(settings.logging.format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if settings.logging.file:
        log_file = Path(settings.logging.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    for name, engine_level in ENGINE_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, engine_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    package_logger.propagate = False
    package_logger.info(f"Logging configured with level: {logging.getLevelName(level)}")
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger below the ``zidrill`` package logger."""
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
