"""Logging setup for coursehub processes.

The Celery worker and the seed CLI call :func:`configure_logging` once at
startup. Library modules only ever use ``logging.getLogger(__name__)`` and
inherit the handlers attached to the ``coursehub`` logger here.
"""

import logging
import logging.handlers
import os

LOGGER_NAME = "coursehub"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"  # ISO 8601

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_level(level: str) -> int:
    level_upper = level.upper()
    if level_upper not in LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVELS)}")
    return getattr(logging, level_upper)


def configure_logging(settings, name: str = LOGGER_NAME, *, console: bool = True) -> logging.Logger:
    """Attach coursehub handlers to the ``name`` logger.

    Uses ``log_level``, ``file_logging``, ``log_dir``, ``log_max_bytes`` and
    ``log_backup_count`` from ``settings``. Handlers are attached once per
    process; calling again only updates the level.

    Raises:
        ValueError: If ``settings.log_level`` is not a logging level name
    """
    logger = logging.getLogger(name)
    logger.setLevel(parse_level(settings.log_level))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if settings.file_logging:
        os.makedirs(settings.log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(settings.log_dir, f"{name}.log"),
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
