"""
Outbound messaging channels.
"""

from src.core.channels.base_channel import BaseChannel, ChannelConfig, ChannelMetrics, ChannelResponse
from src.core.channels.messenger_channel import MessengerChannel

__all__ = [
    "BaseChannel",
    "ChannelConfig",
    "ChannelMetrics",
    "ChannelResponse",
    "MessengerChannel",
]
