"""
Logging setup for the action scripts.

Library modules only ever call `logging.getLogger(__name__)`; nothing under
src/ configures handlers on import. An action calls `setup_logger()` once at
startup to attach a console handler to the `src` logger (which every module
logger inherits from) and, when a log directory is configured, a daily file:

    {log_dir}/{file_prefix}_{YYYYMMDD}.log   e.g. logs/backtester_20240628.log
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str = "src",
    level: str = "INFO",
    log_dir: Path | str | None = None,
    console: bool = True,
    file_prefix: str = "backtester",
) -> logging.Logger:
    """
    Configure the `name` logger with a console and an optional daily file handler.

    Calling it again for the same logger only updates the level; handlers are
    attached once.

    Args:
        name: Logger to configure ("src" covers every module in the package).
        level: Level name, e.g. "INFO" or "DEBUG".
        log_dir: Directory for the daily log file; None disables file logging.
        console: Attach a stderr handler (stdout stays free for reports).
        file_prefix: Log file name prefix.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y%m%d")
        file_handler = logging.FileHandler(log_path / f"{file_prefix}_{today}.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
