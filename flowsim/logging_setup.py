"""
Logging Setup

Configures standard-library logging for scripts and services embedding
the engine. Library modules only create module-level loggers.
"""

from typing import Optional
import logging

from .config.settings import Settings, get_settings


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Apply the configured level and format to the root logger."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format=settings.log_format, force=True)
    logging.getLogger(__name__).debug("Logging configured at %s", logging.getLevelName(level))
