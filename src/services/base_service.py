"""
Base Service Class

Abstract base class for services providing common logging and error
wrapping helpers.
"""

from abc import ABC
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from src.models.types import UserId
from src.services.exceptions import ServiceError, ValidationError


class BaseService(ABC):
    """Abstract base class for all services"""

    def __init__(self):
        self.logger = structlog.get_logger(self.__class__.__name__)
        self.service_name = self.__class__.__name__

    def log_operation(
            self,
            operation: str,
            user_id: Optional[UserId] = None,
            **kwargs
    ) -> None:
        """Log service operation with standard fields"""
        log_data = {
            "service": self.service_name,
            "operation": operation,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **kwargs
        }

        if user_id:
            log_data["user_id"] = user_id

        self.logger.info("Service operation", **log_data)

    def handle_service_error(
            self,
            error: Exception,
            operation: str,
            user_id: Optional[UserId] = None,
            **context
    ) -> ServiceError:
        """
        Log and wrap service errors with context

        Args:
            error: Original exception
            operation: Operation that failed
            user_id: Optional Messenger user id
            **context: Additional context

        Returns:
            ServiceError wrapping the original exception
        """
        error_context = {
            "service": self.service_name,
            "operation": operation,
            "error_type": type(error).__name__,
            "error_message": str(error),
            **self._sanitize_log_data(context)
        }

        if user_id:
            error_context["user_id"] = user_id

        self.logger.error("Service operation failed", **error_context)

        if isinstance(error, ServiceError):
            return error

        return ServiceError(
            f"{operation} failed: {str(error)}",
            original_error=error
        )

    def _require(self, value: Any, field: str) -> None:
        """Raise ValidationError when a required value is empty"""
        if value is None or value == "":
            raise ValidationError(f"Missing required field: {field}", field=field)

    def _sanitize_log_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Remove sensitive data from log entries"""
        sensitive_fields = [
            "password", "token", "secret", "key", "credential",
            "authorization", "api_key", "signature"
        ]

        sanitized = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in sensitive_fields):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_log_data(value)
            else:
                sanitized[key] = value

        return sanitized
