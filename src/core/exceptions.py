"""
Core exceptions for the channel layer.

This module defines custom exceptions raised while talking to the
messaging platform.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class CoreError(Exception):
    """Base exception for all core errors."""

    def __init__(
            self,
            message: str,
            error_code: Optional[str] = None,
            details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


class ChannelError(CoreError):
    """Base exception for channel-related operations."""
    pass


class ChannelConfigurationError(ChannelError):
    """Raised when channel configuration is invalid."""

    def __init__(self, channel: str, config_issue: str):
        super().__init__(
            message=f"Channel {channel} configuration error: {config_issue}",
            error_code="CHANNEL_CONFIG_ERROR",
            details={"channel": channel, "config_issue": config_issue}
        )


class ChannelRateLimitError(ChannelError):
    """Raised when the platform answers with HTTP 429."""

    def __init__(
            self,
            channel: str,
            retry_after: Optional[int] = None
    ):
        super().__init__(
            message=f"Channel {channel} rate limit exceeded",
            error_code="CHANNEL_RATE_LIMIT",
            details={
                "channel": channel,
                "retry_after": retry_after
            }
        )
        self.retry_after = retry_after


class ChannelDeliveryError(ChannelError):
    """Raised when message delivery through channel fails."""

    def __init__(
            self,
            channel: str,
            recipient: str,
            delivery_error: str,
            is_permanent: bool = False,
            delivered: int = 0
    ):
        super().__init__(
            message=f"Message delivery failed via {channel} to {recipient}: {delivery_error}",
            error_code="CHANNEL_DELIVERY_ERROR",
            details={
                "channel": channel,
                "recipient": recipient,
                "delivery_error": delivery_error,
                "is_permanent": is_permanent,
                "delivered": delivered
            }
        )
        self.recipient = recipient
        self.is_permanent = is_permanent
        self.delivered = delivered
