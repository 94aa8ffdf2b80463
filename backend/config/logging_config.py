"""Logging configuration for the character builder."""
import os
import sys
from datetime import datetime
from pathlib import Path
from loguru import logger

from utils.paths import get_writable_dir


SESSION_ID = datetime.now().strftime("%Y%m%d_%H%M%S")

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:{line} - <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


def get_log_dir() -> Path:
    configured = os.getenv("LOG_DIR")
    if configured:
        path = Path(configured)
        path.mkdir(parents=True, exist_ok=True)
        return path
    return get_writable_dir("logs")


def configure_logging():
    """Configure Loguru logging."""
    logger.remove()

    log_filter = os.getenv("LOG_FILTER", "")
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    if log_filter:
        # e.g. LOG_FILTER=character.managers to trace the choice pipeline only
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=CONSOLE_FORMAT,
            filter=lambda record: log_filter in record["name"]
        )
    else:
        logger.add(sys.stderr, level=log_level, format=CONSOLE_FORMAT)

    if os.getenv("LOG_TO_FILE", "true").lower() == "true":
        log_dir = get_log_dir()
        logger.add(
            log_dir / f"app_{SESSION_ID}.log",
            rotation="5 MB",
            retention=5,
            level="DEBUG",
            format=FILE_FORMAT
        )

        logger.add(
            log_dir / "error.log",
            rotation="10 MB",
            retention="14 days",
            level="ERROR",
            format=FILE_FORMAT
        )

    return logger

configure_logging()
