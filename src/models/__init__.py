"""
Data models for the Messenger Relay Service.

- types: enums and type aliases
- conversation: remembered conversation turns
- schemas: webhook payload and response schemas
"""

from src.models.types import Role, DeliveryStatus, EventKind, UserId
from src.models.conversation import Turn, utc_now

__all__ = [
    "Role",
    "DeliveryStatus",
    "EventKind",
    "UserId",
    "Turn",
    "utc_now",
]
