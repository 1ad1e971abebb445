"""Logging configuration for the kubehop package."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

NOISY_LOGGERS = ('urllib3', 'requests', 'kubernetes', 'uvicorn.access')


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Set up a logger with the specified name and log level.

    Args:
        name: The name of the logger
        level: The logging level (default: logging.INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Don't add handlers if they're already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    return logger


def configure_logging(
    level: str = "INFO",
    debug: bool = False,
    log_file: Optional[str] = None,
    max_size_mb: int = 50,
    backup_count: int = 5,
) -> logging.Logger:
    """Configure the ``kubehop`` logger tree for CLI and gateway use.

    Args:
        level: Level name used when ``debug`` is off
        debug: Force DEBUG and keep third-party loggers verbose
        log_file: Optional path of a rotating log file
        max_size_mb: Rotation threshold for ``log_file``
        backup_count: Rotated files to keep

    Returns:
        The package root logger
    """
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    logger = setup_logger("kubehop", log_level)
    logger.setLevel(log_level)
    for handler in logger.handlers:
        handler.setLevel(log_level)

    if not debug:
        for noisy in NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    if log_file:
        path = Path(log_file).expanduser().absolute()
        already = any(
            isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == path
            for h in logger.handlers
        )
        if not already:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=path,
                maxBytes=max_size_mb * 1024 * 1024,
                backupCount=backup_count,
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            logger.addHandler(file_handler)
            logger.debug(f"Logging to file: {path}")

    return logger
