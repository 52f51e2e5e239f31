"""Rotating logger setup for the OTA agent."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union


def setup_logger(
    name: str = "ota_agent",
    log_file: Optional[str] = "./logs/ota_agent.log",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 3,
    level: Union[int, str] = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Setup rotating file logger with ISO 8601 timestamps.

    Component loggers (``ota_agent.locator``, ``ota_agent.staging`` ...)
    propagate to the logger configured here.

    Args:
        name: Logger name
        log_file: Path to log file (created if doesn't exist), None for console only
        max_bytes: Max size before rotation (default 10MB)
        backup_count: Number of rotated files to keep
        level: Logging level, as int or name ("DEBUG", "INFO", ...)
        console: Also log to stderr

    Returns:
        Configured logger instance
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers if already configured
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
