"""
Abstract base class defining the channel interface and common functionality.

This module provides the foundation for outbound messaging channels with
standardized validation, metrics, and response formatting.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.config.constants import DEFAULT_SEND_TIMEOUT, MESSENGER_MAX_MESSAGE_LENGTH, SenderAction
from src.core.exceptions import ChannelConfigurationError
from src.models.types import ChannelType, DeliveryStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ChannelConfig(BaseModel):
    """Configuration model for channel settings."""

    model_config = ConfigDict(use_enum_values=False)

    channel_type: ChannelType
    enabled: bool = True

    # Authentication
    api_token: Optional[str] = None

    # Endpoint
    api_base_url: str = "https://graph.facebook.com"
    api_version: str = "v19.0"

    # Message formatting
    max_message_length: int = MESSENGER_MAX_MESSAGE_LENGTH
    supports_typing_indicators: bool = True

    # Delivery settings
    timeout_seconds: float = DEFAULT_SEND_TIMEOUT
    typing_delay_seconds: float = 1.0


class ChannelResponse(BaseModel):
    """Standardized response from channel operations."""

    success: bool
    channel_type: ChannelType
    platform_message_id: Optional[str] = None
    delivery_status: DeliveryStatus = DeliveryStatus.SENT
    timestamp: datetime = Field(default_factory=_utc_now)

    # Error information
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    is_retryable: bool = True

    # Delivery metadata
    recipient: Optional[str] = None
    status_code: Optional[int] = None
    processing_time_ms: Optional[int] = None


class ChannelMetrics(BaseModel):
    """Channel usage metrics."""

    total_messages_sent: int = 0
    total_messages_failed: int = 0
    success_rate: float = 0.0
    average_response_time_ms: float = 0.0
    rate_limit_hits: int = 0

    common_errors: Dict[str, int] = Field(default_factory=dict)
    last_error_at: Optional[datetime] = None


class BaseChannel(ABC):
    """Abstract base class for all channel implementations."""

    def __init__(self, config: ChannelConfig):
        self.config = config
        self.logger = structlog.get_logger(self.__class__.__name__)
        self.metrics = ChannelMetrics()
        self._validate_config()

        self.logger.info(
            "Channel initialized",
            channel_type=self.channel_type.value,
            enabled=self.config.enabled,
            max_message_length=self.config.max_message_length
        )

    @property
    @abstractmethod
    def channel_type(self) -> ChannelType:
        """Return the channel type."""
        pass

    @abstractmethod
    async def send_text(self, recipient: str, text: str) -> ChannelResponse:
        """
        Send a text message through this channel.

        Args:
            recipient: Channel-specific recipient identifier
            text: Message text, at most ``max_message_length`` characters

        Returns:
            ChannelResponse with delivery information
        """
        pass

    @abstractmethod
    async def send_action(self, recipient: str, action: SenderAction) -> ChannelResponse:
        """
        Send a sender action such as a typing indicator.

        Args:
            recipient: Channel-specific recipient identifier
            action: Action to display

        Returns:
            ChannelResponse with delivery information
        """
        pass

    @abstractmethod
    async def send_chunks(self, recipient: str, chunks: Sequence[str]) -> int:
        """
        Send several text messages in order.

        Returns:
            Number of chunks delivered

        Raises:
            ChannelDeliveryError: When any chunk could not be delivered, after
                every chunk was attempted
        """
        pass

    @abstractmethod
    def validate_recipient(self, recipient: str) -> bool:
        """Validate recipient format for this channel."""
        pass

    def validate_text(self, text: str) -> Optional[str]:
        """
        Validate outbound text for this channel.

        Returns:
            None if the text can be sent, otherwise the reason it cannot
        """
        if not self.config.enabled:
            return "Channel is disabled"
        if not text or not text.strip():
            return "Message text is empty"
        if len(text) > self.config.max_message_length:
            return (
                f"Message text too long ({len(text)} > "
                f"{self.config.max_message_length})"
            )
        return None

    def update_metrics(
            self,
            success: bool,
            response_time_ms: int,
            error_code: Optional[str] = None
    ) -> None:
        """Update channel metrics after a request."""
        if success:
            self.metrics.total_messages_sent += 1
        else:
            self.metrics.total_messages_failed += 1
            self.metrics.last_error_at = _utc_now()

            if error_code:
                self.metrics.common_errors[error_code] = self.metrics.common_errors.get(error_code, 0) + 1

        total = self.metrics.total_messages_sent + self.metrics.total_messages_failed
        if total > 0:
            self.metrics.success_rate = self.metrics.total_messages_sent / total

        if self.metrics.average_response_time_ms == 0:
            self.metrics.average_response_time_ms = response_time_ms
        else:
            # Moving average
            self.metrics.average_response_time_ms = (
                    self.metrics.average_response_time_ms * 0.9 + response_time_ms * 0.1
            )

    def get_metrics(self) -> ChannelMetrics:
        """Get current channel metrics."""
        return self.metrics.model_copy()

    def _validate_config(self) -> None:
        """Validate channel configuration."""
        if self.config.max_message_length <= 0:
            raise ChannelConfigurationError(self.channel_type.value, "max_message_length must be positive")

        if self.config.timeout_seconds <= 0:
            raise ChannelConfigurationError(self.channel_type.value, "timeout_seconds must be positive")

        if self.config.typing_delay_seconds < 0:
            raise ChannelConfigurationError(self.channel_type.value, "typing_delay_seconds cannot be negative")

    @staticmethod
    def _calculate_processing_time(start: datetime) -> int:
        return int((_utc_now() - start).total_seconds() * 1000)

    def _create_error_response(
            self,
            error_code: str,
            error_message: str,
            recipient: Optional[str] = None,
            is_retryable: bool = True,
            status_code: Optional[int] = None,
            processing_time_ms: Optional[int] = None
    ) -> ChannelResponse:
        """Create standardized error response."""
        return ChannelResponse(
            success=False,
            channel_type=self.channel_type,
            delivery_status=DeliveryStatus.FAILED,
            error_code=error_code,
            error_message=error_message,
            recipient=recipient,
            is_retryable=is_retryable,
            status_code=status_code,
            processing_time_ms=processing_time_ms
        )

    def _create_success_response(
            self,
            platform_message_id: Optional[str] = None,
            recipient: Optional[str] = None,
            status_code: Optional[int] = None,
            processing_time_ms: Optional[int] = None
    ) -> ChannelResponse:
        """Create standardized success response."""
        return ChannelResponse(
            success=True,
            channel_type=self.channel_type,
            platform_message_id=platform_message_id,
            delivery_status=DeliveryStatus.SENT,
            recipient=recipient,
            status_code=status_code,
            processing_time_ms=processing_time_ms
        )

    async def close(self) -> None:
        """Release network resources held by the channel."""
        pass

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"type={self.channel_type.value}, "
            f"enabled={self.config.enabled}, "
            f"max_length={self.config.max_message_length}"
            f")"
        )
