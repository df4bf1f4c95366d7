"""Logging configuration for the ingestion pipeline.

Console output goes through rich, file output is plain text with daily
rotation under the configured log directory.
"""

import logging
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from rich.logging import RichHandler

from config.settings import LoggingConfig

ROOT_LOGGER = "shein_insights"


def setup_logging(logging_config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Set up logging for the pipeline.

    Args:
        logging_config: Logging settings (defaults to LoggingConfig())

    Returns:
        The configured package logger
    """
    logging_config = logging_config or LoggingConfig()
    level = getattr(logging, logging_config.log_level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    if logging_config.log_to_console:
        console_handler = RichHandler(show_path=False, rich_tracebacks=True)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(console_handler)

    if logging_config.log_to_file:
        logging_config.ensure_dirs()
        file_handler = TimedRotatingFileHandler(
            logging_config.log_dir / "pipeline.log",
            when="midnight",
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package hierarchy, e.g. get_logger(__name__)."""
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    if name.startswith("src."):
        name = name[len("src."):]
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
