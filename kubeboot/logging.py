"""Logging configuration for the kubeboot package."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from kubeboot.config import Config

# Libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ("paramiko", "urllib3", "kubernetes")


def setup_logger(name: str, level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with the specified name and log level.

    Args:
        name: The name of the logger
        level: The logging level (default: logging.INFO)
        log_file: Optional file to also log to, rotated by size

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Don't add handlers if they're already configured
    if not logger.handlers:
        formatter = logging.Formatter(Config.LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if log_file:
            path = Path(log_file).expanduser().absolute()
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=path,
                maxBytes=Config.LOG_MAX_SIZE_MB * 1024 * 1024,
                backupCount=Config.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
            logger.debug(f"Logging to file: {path}")

    return logger


def setup_logging(debug_mode: bool = False) -> logging.Logger:
    """Configure the kubeboot logger tree based on debug mode."""
    if debug_mode:
        level = logging.DEBUG
    else:
        level = getattr(logging, Config.LOG_LEVEL, logging.INFO)

    logger = setup_logger("kubeboot", level, Config.LOG_FILE or None)

    # Disable debug logging for noisy libraries
    if not debug_mode:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logger
