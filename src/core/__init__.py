"""
Core package for the Messenger Relay Service.

Contains the outbound messaging channel and its exceptions.
"""

from src.core.channels import (
    BaseChannel,
    ChannelConfig,
    ChannelResponse,
    MessengerChannel,
)
from src.core.exceptions import (
    CoreError,
    ChannelError,
    ChannelConfigurationError,
    ChannelDeliveryError,
    ChannelRateLimitError,
)

__all__ = [
    "BaseChannel",
    "ChannelConfig",
    "ChannelResponse",
    "MessengerChannel",
    "CoreError",
    "ChannelError",
    "ChannelConfigurationError",
    "ChannelDeliveryError",
    "ChannelRateLimitError",
]
