"""
Logging configuration module
"""

import sys
from typing import Optional

from loguru import logger

from casbin_sql_adapter.config import Settings, settings as default_settings


def setup_logging(settings: Optional[Settings] = None):
    """configure logging system"""
    import logging

    settings = settings or default_settings

    # remove default log handler
    logger.remove()

    # SQLAlchemy echo goes through stdlib logging
    if not settings.db_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    # add console log handler
    logger.add(
        sys.stderr,
        level="DEBUG" if settings.debug else settings.log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )

    # add file log handler (if needed)
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="1 day",
            retention="30 days",
            compression="zip"
        )
