"""
Common type definitions, enums, and type aliases used across the application.
Centralized type definitions to ensure consistency.
"""

from enum import Enum

from src.config.constants import EXTERNAL_MODEL_ROLES


# ============================================================================
# ENUMS FOR TYPE SAFETY
# ============================================================================

class Role(str, Enum):
    """Originator of a conversation turn"""
    USER = "user"
    MODEL = "model"

    @classmethod
    def from_external(cls, value: str) -> "Role":
        """
        Normalize a provider or legacy role spelling.

        Raises:
            ValueError: If the spelling is not recognised
        """
        normalized = (value or "").strip().lower()
        if normalized == cls.USER.value:
            return cls.USER
        if normalized in EXTERNAL_MODEL_ROLES:
            return cls.MODEL
        raise ValueError(f"Unknown role: {value!r}")

    def to_provider(self) -> str:
        """Role name expected by the generateContent API"""
        return "user" if self is Role.USER else "model"


class ChannelType(str, Enum):
    """Define supported communication channels"""
    MESSENGER = "messenger"


class DeliveryStatus(str, Enum):
    """Define message delivery states"""
    SENT = "sent"
    FAILED = "failed"


class EventKind(str, Enum):
    """Kinds of messaging events delivered by the webhook"""
    TEXT = "text"
    ATTACHMENT = "attachment"
    POSTBACK = "postback"
    ECHO = "echo"
    RECEIPT = "receipt"
    UNKNOWN = "unknown"


# ============================================================================
# TYPE ALIASES FOR CLARITY
# ============================================================================

UserId = str
PageId = str
