"""Tests for the logging setup."""

import logging
import logging.handlers
import uuid

import pytest

from coursehub.common.logger import configure_logging, parse_level


@pytest.fixture
def logger_name():
    name = f"coursehub-test-{uuid.uuid4().hex[:8]}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_parse_level():
    assert parse_level("debug") == logging.DEBUG
    with pytest.raises(ValueError):
        parse_level("LOUD")


def test_console_only(settings, logger_name):
    settings.log_level = "debug"
    settings.file_logging = False
    logger = configure_logging(settings, logger_name)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)


def test_file_logging(settings, logger_name, tmp_path):
    settings.file_logging = True
    settings.log_dir = str(tmp_path / "logs")
    settings.log_backup_count = 2
    logger = configure_logging(settings, logger_name, console=False)
    logger.info("enrollment approved")

    (handler,) = logger.handlers
    handler.flush()
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert handler.backupCount == 2

    contents = (tmp_path / "logs" / f"{logger_name}.log").read_text()
    assert "[INFO]" in contents
    assert "enrollment approved" in contents


def test_second_call_only_updates_level(settings, logger_name):
    settings.file_logging = False
    configure_logging(settings, logger_name)
    settings.log_level = "WARNING"
    logger = configure_logging(settings, logger_name)

    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING


def test_invalid_level(settings, logger_name):
    settings.log_level = "LOUD"
    with pytest.raises(ValueError):
        configure_logging(settings, logger_name)


def test_defaults_to_package_logger(settings):
    settings.log_level = "WARNING"
    settings.file_logging = False
    logger = logging.getLogger("coursehub")
    existing = list(logger.handlers)
    try:
        assert configure_logging(settings) is logger
        assert logger.level == logging.WARNING
    finally:
        for handler in list(logger.handlers):
            if handler not in existing:
                logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
