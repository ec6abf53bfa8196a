"""
Utilities package for the Messenger Relay Service.

This package provides logging setup, outbound text formatting and
metrics helpers used throughout the service.
"""

from src.utils.logger import setup_logging, get_logger
from src.utils.formatters import clean_response, chunk_message

__all__ = [
    # Logging utilities
    "setup_logging",
    "get_logger",

    # Outbound text
    "clean_response",
    "chunk_message",
]
