"""Service layer exceptions"""

from datetime import datetime, timezone


class ServiceError(Exception):
    """Base exception for service layer errors"""

    def __init__(self, message: str, original_error: Exception = None, error_code: str = None):
        super().__init__(message)
        self.original_error = original_error
        self.error_code = error_code or "SERVICE_ERROR"
        self.timestamp = datetime.now(timezone.utc)


class ValidationError(ServiceError):
    """Exception for input validation failures"""

    def __init__(self, message: str, field: str = None, value: str = None):
        super().__init__(message, error_code="VALIDATION_ERROR")
        self.field = field
        self.value = value


class UnsupportedPayloadError(ServiceError):
    """Webhook delivery for an object type the relay does not handle"""

    def __init__(self, message: str, object_type: str = None):
        super().__init__(message, error_code="UNSUPPORTED_PAYLOAD")
        self.object_type = object_type


class ExternalServiceError(ServiceError):
    """Exception for external service failures"""

    def __init__(self, message: str, service_name: str = None, status_code: int = None,
                 original_error: Exception = None, error_code: str = None):
        super().__init__(message, original_error=original_error,
                         error_code=error_code or "EXTERNAL_SERVICE_ERROR")
        self.service_name = service_name
        self.status_code = status_code


class ModelError(ExternalServiceError):
    """Exception for language model call failures"""

    def __init__(self, message: str, model_name: str = None, status_code: int = None,
                 original_error: Exception = None):
        super().__init__(message, service_name="gemini", status_code=status_code,
                         original_error=original_error, error_code="MODEL_ERROR")
        self.model_name = model_name


class RateLimitError(ExternalServiceError):
    """Upstream API answered with HTTP 429"""

    def __init__(self, message: str, service_name: str = None, retry_after: int = None):
        super().__init__(message, service_name=service_name, status_code=429,
                         error_code="RATE_LIMIT_EXCEEDED")
        self.retry_after = retry_after


class ConfigurationError(ServiceError):
    """Exception for configuration errors"""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(message, error_code="CONFIGURATION_ERROR")
        self.config_key = config_key
