"""
Configuration module: Settings, logging.
"""

from shared.config.settings import Settings, settings, get_settings
from shared.config.logging import get_logger, setup_logging

__all__ = [
    # settings
    "Settings",
    "settings",
    "get_settings",
    # logging
    "get_logger",
    "setup_logging",
]
