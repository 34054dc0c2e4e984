"""Logging configuration for URBANPULSE."""

import logging
import sys
from pathlib import Path
from typing import Optional, Dict, Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = "",
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None
) -> logging.Logger:
    """
    Send a logger's output to stdout and, optionally, a file.

    Calling it again replaces the handlers from the previous call, so
    reconfiguring never duplicates output.

    Args:
        name: Logger name; the default "" is the root logger
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Optional log file path; parent directories are created
        log_format: Optional format string

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def setup_from_config(logging_config: Dict[str, Any]) -> logging.Logger:
    """
    Configure process-wide logging from the 'logging' settings section.

    Handlers go on the root logger so module loggers created with
    ``logging.getLogger(__name__)`` are covered too.
    """
    return setup_logger(
        level=logging_config.get("level", "INFO"),
        log_file=logging_config.get("file"),
        log_format=logging_config.get("format"),
    )
