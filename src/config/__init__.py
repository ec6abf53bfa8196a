"""
Configuration package for the Messenger Relay Service.

This package provides centralized configuration management with
environment-based settings, validation, and constants.
"""

from src.config.settings import get_settings, reload_settings, Settings
from src.config.constants import (
    SERVICE_NAME,
    SERVICE_VERSION,
    PAGE_OBJECT,
    MESSENGER_MAX_MESSAGE_LENGTH,
)

__all__ = [
    "get_settings",
    "reload_settings",
    "Settings",
    "SERVICE_NAME",
    "SERVICE_VERSION",
    "PAGE_OBJECT",
    "MESSENGER_MAX_MESSAGE_LENGTH",
]
