"""
Tests for src/utils/logger.py

Each test configures a uniquely named logger so handlers never leak between
tests (or into the real "src" logger).
"""

import logging
from datetime import datetime

import pytest

from src.utils.logger import setup_logger


@pytest.fixture
def logger_name(request):
    name = f"test_logger.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_console_only(logger_name):
    logger = setup_logger(name=logger_name, level="WARNING")

    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)


def test_daily_file_handler(logger_name, tmp_path):
    logger = setup_logger(name=logger_name, level="INFO", log_dir=tmp_path / "logs", console=False)
    logger.info("Synced %d records for %s", 5, "AAPL")
    for handler in logger.handlers:
        handler.flush()

    expected = tmp_path / "logs" / f"backtester_{datetime.now().strftime('%Y%m%d')}.log"
    assert expected.exists()
    line = expected.read_text().strip()
    assert f"[INFO] {logger_name}: Synced 5 records for AAPL" in line


def test_second_call_only_updates_level(logger_name, tmp_path):
    setup_logger(name=logger_name, level="INFO", log_dir=tmp_path)
    logger = setup_logger(name=logger_name, level="DEBUG", log_dir=tmp_path)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2


def test_child_loggers_propagate(logger_name, tmp_path):
    setup_logger(name=logger_name, log_dir=tmp_path, console=False, file_prefix="child")
    logging.getLogger(f"{logger_name}.engine").info("Running MA30 Crossover Strategy")

    log_file = next(tmp_path.glob("child_*.log"))
    for handler in logging.getLogger(logger_name).handlers:
        handler.flush()
    assert "Running MA30 Crossover Strategy" in log_file.read_text()


def test_unknown_level(logger_name):
    with pytest.raises(AttributeError):
        setup_logger(name=logger_name, level="LOUD")
