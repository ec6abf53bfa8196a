"""
Repository-specific exceptions
==============================

Exception Hierarchy:
    RepositoryError (base)
    └── PersistenceError
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class RepositoryError(Exception):
    """
    Base exception for all repository operations

    Carries the original exception and free-form context so the service
    layer can log a failure without re-raising it.
    """

    def __init__(
            self,
            message: str,
            original_error: Optional[Exception] = None,
            error_code: Optional[str] = None,
            context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.error_code = error_code or "REPOSITORY_ERROR"
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging"""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context,
            "original_error": str(self.original_error) if self.original_error else None
        }


class PersistenceError(RepositoryError):
    """Snapshot could not be read from or written to storage"""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        super().__init__(message, error_code="PERSISTENCE_ERROR", context=context, **kwargs)
        self.path = path
