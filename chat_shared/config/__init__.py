"""
Configuration module: Settings, logging.
"""

from chat_shared.config.settings import settings, get_settings
from chat_shared.config.logging import get_logger, setup_logging

__all__ = [
    # settings
    "settings",
    "get_settings",
    # logging
    "get_logger",
    "setup_logging",
]
