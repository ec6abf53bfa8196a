"""
HTTP-facing exceptions for the Messenger Relay Service.

This package provides the exception classes surfaced through the API and
the FastAPI exception handler setup.
"""

from src.exceptions.base_exceptions import (
    RelayServiceException,
    VerificationError,
    UnsupportedPayloadError,
    setup_exception_handlers,
)

__all__ = [
    "RelayServiceException",
    "VerificationError",
    "UnsupportedPayloadError",
    "setup_exception_handlers",
]
