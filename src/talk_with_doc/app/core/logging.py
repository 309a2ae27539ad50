"""
Logging configuration for Talk With Doc.

This module provides a centralized logging setup with file rotation
and proper formatting.
"""

import logging
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from talk_with_doc.core.settings import Settings
from talk_with_doc.services import DEFAULTS

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers
QUIET_LOGGERS = ("httpx", "httpcore", "websockets")


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure logging with rotation and formatting.

    Args:
        settings: Optional settings; defaults are used when omitted

    Returns:
        Logger instance
    """
    settings = settings or Settings()
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    # File handler with rotation (daily rotation, keep 7 days)
    file_handler = TimedRotatingFileHandler(
        settings.log_dir / "server.log",
        when=DEFAULTS["log_rotation"],
        backupCount=DEFAULTS["log_backup_count"],
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[console_handler, file_handler], format=LOG_FORMAT)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(__name__)
