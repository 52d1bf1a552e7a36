"""Centralised logging configuration utilities."""

import logging
from typing import Optional

from levelup.core.config import get_settings


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging if it has not been configured yet."""
    if logging.getLogger().handlers:
        return

    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module specific logger with shared configuration."""
    configure_logging()
    return logging.getLogger(name)
