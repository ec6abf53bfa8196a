"""
Base exception classes and error handling for the Messenger Relay Service.

This module provides the HTTP-facing exceptions and the centralized
exception handlers registered on the FastAPI application.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config.constants import ERROR_MESSAGES, ErrorCategory
from src.utils.logger import get_logger

logger = get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RelayServiceException(Exception):
    """
    Base exception class for errors surfaced through the HTTP API.

    Carries an HTTP status code, a machine-readable error code and a
    category used for monitoring.
    """

    def __init__(
            self,
            message: str,
            error_code: str = "INTERNAL_ERROR",
            status_code: int = 500,
            details: Optional[Dict[str, Any]] = None,
            category: ErrorCategory = ErrorCategory.INTERNAL,
            user_message: Optional[str] = None,
            caused_by: Optional[Exception] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        self.category = category
        self.user_message = user_message or ERROR_MESSAGES.get(error_code, message)
        self.caused_by = caused_by
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary representation.

        Returns:
            Dictionary with error information
        """
        error_dict = {
            "error": {
                "code": self.error_code,
                "message": self.user_message,
                "category": self.category.value,
                "timestamp": self.timestamp.isoformat(),
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict

    def log_error(self, bound_logger: Optional[structlog.stdlib.BoundLogger] = None, **context) -> None:
        """Log the error at a level matching its status code."""
        bound_logger = bound_logger or logger

        log_data = {
            "error_code": self.error_code,
            "error_category": self.category.value,
            "status_code": self.status_code,
            **context
        }

        if self.details:
            log_data["details"] = self.details

        if self.caused_by:
            log_data["caused_by"] = str(self.caused_by)
            log_data["caused_by_type"] = type(self.caused_by).__name__

        if self.status_code >= 500:
            bound_logger.error(self.message, **log_data)
        elif self.status_code >= 400:
            bound_logger.warning(self.message, **log_data)
        else:
            bound_logger.info(self.message, **log_data)


class VerificationError(RelayServiceException):
    """Webhook verify token or signature mismatch."""

    def __init__(self, message: str = "Webhook verification failed", **kwargs):
        super().__init__(
            message=message,
            error_code="VERIFICATION_FAILED",
            status_code=403,
            category=ErrorCategory.AUTHENTICATION,
            **kwargs
        )


class UnsupportedPayloadError(RelayServiceException):
    """Malformed delivery or an object type other than a page."""

    def __init__(self, message: str = "Unsupported webhook payload", **kwargs):
        super().__init__(
            message=message,
            error_code="UNSUPPORTED_PAYLOAD",
            status_code=404,
            category=ErrorCategory.NOT_FOUND,
            **kwargs
        )


def _meta(request: Request) -> Dict[str, Any]:
    meta = {
        "timestamp": _now_iso(),
        "path": str(request.url.path),
        "method": request.method,
    }
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        meta["request_id"] = request_id
    return meta


async def relay_exception_handler(request: Request, exc: RelayServiceException) -> JSONResponse:
    """Handler for RelayServiceException and subclasses."""
    exc.log_error(path=str(request.url.path), method=request.method)

    content = {"status": "error", **exc.to_dict(), "meta": _meta(request)}
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handler for HTTP exceptions raised by routing or handlers."""
    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=str(request.url.path),
        method=request.method
    )

    content = {
        "status": "error",
        "error": {
            "code": f"HTTP_{exc.status_code}",
            "message": exc.detail,
            "timestamp": _now_iso(),
        },
        "meta": _meta(request),
    }
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for request validation errors."""
    validation_errors = [
        {
            "field": ".".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation failed",
        validation_errors=validation_errors,
        path=str(request.url.path),
        method=request.method
    )

    content = {
        "status": "error",
        "error": {
            "code": "VALIDATION_ERROR",
            "message": ERROR_MESSAGES["VALIDATION_ERROR"],
            "category": ErrorCategory.VALIDATION.value,
            "timestamp": _now_iso(),
            "details": {"validation_errors": validation_errors},
        },
        "meta": _meta(request),
    }
    return JSONResponse(status_code=400, content=content)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unexpected exceptions."""
    error_id = str(uuid.uuid4())

    logger.error(
        "Unexpected exception occurred",
        error_id=error_id,
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=str(request.url.path),
        method=request.method,
        exc_info=exc
    )

    content = {
        "status": "error",
        "error": {
            "code": "INTERNAL_ERROR",
            "message": ERROR_MESSAGES["INTERNAL_ERROR"],
            "category": ErrorCategory.INTERNAL.value,
            "timestamp": _now_iso(),
            "error_id": error_id,
        },
        "meta": _meta(request),
    }
    return JSONResponse(status_code=500, content=content)


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Setup exception handlers for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RelayServiceException, relay_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Catch-all
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "RelayServiceException",
    "VerificationError",
    "UnsupportedPayloadError",
    "setup_exception_handlers",
    "relay_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "generic_exception_handler",
]
