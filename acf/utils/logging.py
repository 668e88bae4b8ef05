"""
Logging setup.

Configures loguru sinks for the ACF services.
"""

import sys

from loguru import logger

from acf.config.settings import Settings, settings as default_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure stderr and rotating file sinks."""
    settings = settings or default_settings

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            encoding="utf-8",
        )

    logger.info("ACF logging configured")
