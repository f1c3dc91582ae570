"""
Logging for the dedup engine.

One "deal_dedup" logger writes to stdout and to logs/deal_dedup.log. Run
summaries go to INFO; per-pair detail (skipped merges, savepoint failures)
goes to DEBUG and normally only reaches the file.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from config.settings import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    name: str = "deal_dedup",
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure and return the named logger. Safe to call repeatedly.

    Args:
        name: Logger name, also used for the log file name
        log_dir: Directory for the log file (default: settings.LOG_DIR)
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        log_dir = log_dir or settings.LOG_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # SQL echo is controlled by DEBUG on the engine; keep the pool quiet
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

    return logger


logger = setup_logging()
