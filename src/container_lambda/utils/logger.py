"""Logging configuration for the project."""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

from ..config import config

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _build_formatter() -> logging.Formatter:
    # CI runs in prod ship JSON lines to CloudWatch; LOG_FORMAT overrides either way
    if config.json_logs:
        return jsonlogger.JsonFormatter(JSON_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name. If None, uses the package logger.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name or "container_lambda")

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logger.setLevel(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(_build_formatter())
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def log_step(logger: logging.Logger, number: int, title: str) -> None:
    """Log a banner announcing a workflow step."""
    logger.info("=" * 60)
    logger.info(f"Step {number}: {title}")
    logger.info("=" * 60)
