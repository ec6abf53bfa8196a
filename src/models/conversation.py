"""
Conversation memory data structures.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.types import Role

# Epoch values above this are milliseconds (year 5138 in seconds)
_EPOCH_MILLIS_THRESHOLD = 1e11


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_timestamp(value: Union[datetime, int, float, str]) -> datetime:
    if isinstance(value, bool):
        raise ValueError("timestamp must be a datetime, epoch number or ISO string")
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > _EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"timestamp out of range: {value}") from e
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    raise ValueError("timestamp must be a datetime, epoch number or ISO string")


class Turn(BaseModel):
    """
    One message exchanged in a conversation.

    Turns are immutable; the conversation store only ever appends or drops
    them.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        if isinstance(v, Role):
            return v
        return Role.from_external(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def normalize_timestamp(cls, v):
        return _coerce_timestamp(v)

    def to_snapshot(self) -> Dict[str, Any]:
        """Serialize for the persisted conversation snapshot"""
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "Turn":
        return cls.model_validate(data)
