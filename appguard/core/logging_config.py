# Copyright (c) 2025 Anush Krishna
# Licensed under the MIT License. See LICENSE file in the project root.

from __future__ import annotations

"""
Logging configuration for AppGuard.

This module provides centralized logging configuration with support for
file and console output, log rotation, and contextual log fields.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional


class ColoredFormatter(logging.Formatter):
    """
    Custom formatter that adds color to console output.

    Colors are applied based on log level to improve readability.
    """

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        """Format log record with color codes."""
        if hasattr(sys.stderr, 'isatty') and sys.stderr.isatty():
            levelname = record.levelname
            if levelname in self.COLORS:
                record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        return super().format(record)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: str = "logs",
    console_output: bool = True,
    file_output: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure logging for the application.

    Sets up both console and file logging on the ``appguard`` logger so that
    every module logger obtained through ``get_logger(__name__)`` inherits the
    handlers.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Name of the log file. If None, uses 'appguard.log'
        log_dir: Directory for log files
        console_output: Whether to output logs to console
        file_output: Whether to output logs to file
        max_bytes: Maximum size of log file before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logging(log_level='DEBUG', file_output=False)
        >>> logger.info('Starting scan...')
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger = logging.getLogger('appguard')
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ColoredFormatter('%(levelname)s: %(message)s'))
        logger.addHandler(console_handler)

    if file_output:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path / (log_file or 'appguard.log'),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def get_logger(name: str = 'appguard') -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Name of the logger. Use __name__ from calling module.

    Returns:
        Logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info('Processing file...')
    """
    return logging.getLogger(name)


class LogContext(logging.LoggerAdapter):
    """
    Logger adapter that prefixes messages with contextual key-value pairs.

    Example:
        >>> log = LogContext(get_logger(__name__), package_id=42)
        >>> log.info('Scan started')  # "[package_id=42] Scan started"
    """

    def __init__(self, logger: logging.Logger, **context):
        super().__init__(logger, context)

    def process(self, msg, kwargs):
        prefix = " ".join(f"{key}={value}" for key, value in self.extra.items())
        extra = dict(kwargs.pop("extra", None) or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return f"[{prefix}] {msg}", kwargs
