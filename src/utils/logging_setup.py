# ========================
# src/utils/logging_setup.py
# ========================

"""
Logging Configuration

Centralized logging setup for the pipeline and the HTTP service.
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

ACCESS_LOGGER_NAME = "chartor.access"


def setup_logging(log_level: str = "INFO",
                 log_file: Optional[str] = None,
                 log_dir: str = "logs") -> None:
    """
    Set up logging configuration for the pipeline.

    Args:
        log_level (str): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file (str): Optional log file name
        log_dir (str): Directory for log files
    """
    # Configure logging format
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    # Set up formatters
    formatter = logging.Formatter(log_format, date_format)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (if specified)
    if log_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_path = log_path / log_file
        file_handler = logging.FileHandler(file_path)
        file_handler.setLevel(logging.DEBUG)  # File gets all messages
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        logging.info(f"Logging to file: {file_path}")

    # Set specific logger levels
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)

    logging.info(f"Logging initialized - Level: {log_level}")


def setup_access_log(log_dir: str = "logs", when: str = "midnight") -> logging.Logger:
    """
    Attach a daily rotating access log to the access logger.

    Args:
        log_dir (str): Directory for the access.log file
        when (str): Rotation interval passed to TimedRotatingFileHandler

    Returns:
        logging.Logger: The access logger
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.setLevel(logging.INFO)

    target = str((log_path / "access.log").resolve())
    for handler in access_logger.handlers:
        if isinstance(handler, TimedRotatingFileHandler) and handler.baseFilename == target:
            return access_logger

    handler = TimedRotatingFileHandler(target, when=when, backupCount=14, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    access_logger.addHandler(handler)

    return access_logger
