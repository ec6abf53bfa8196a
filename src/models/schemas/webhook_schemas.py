"""
Messenger webhook payload schemas.

Only the fields the relay reads are declared; everything else the platform
sends is ignored.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.types import EventKind


class _WebhookModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Participant(_WebhookModel):
    """Sender or recipient reference"""
    id: str


class Attachment(_WebhookModel):
    """Message attachment (image, audio, file, ...)"""
    type: str
    payload: Optional[Dict[str, Any]] = None


class Message(_WebhookModel):
    """Inbound message body"""
    mid: Optional[str] = None
    text: Optional[str] = None
    is_echo: bool = False
    attachments: List[Attachment] = Field(default_factory=list)


class Postback(_WebhookModel):
    """Button or Get Started postback"""
    title: Optional[str] = None
    payload: Optional[str] = None


class MessagingEvent(_WebhookModel):
    """One entry of ``entry[].messaging[]``"""
    sender: Optional[Participant] = None
    recipient: Optional[Participant] = None
    timestamp: Optional[int] = None
    message: Optional[Message] = None
    postback: Optional[Postback] = None
    delivery: Optional[Dict[str, Any]] = None
    read: Optional[Dict[str, Any]] = None

    @property
    def sender_id(self) -> Optional[str]:
        return self.sender.id if self.sender else None

    @property
    def kind(self) -> EventKind:
        if self.message is not None:
            if self.message.is_echo:
                return EventKind.ECHO
            if self.message.text and self.message.text.strip():
                return EventKind.TEXT
            if self.message.attachments:
                return EventKind.ATTACHMENT
            return EventKind.UNKNOWN
        if self.postback is not None:
            return EventKind.POSTBACK
        if self.delivery is not None or self.read is not None:
            return EventKind.RECEIPT
        return EventKind.UNKNOWN


class WebhookEntry(_WebhookModel):
    """One page entry of a webhook batch"""
    id: Optional[str] = None
    time: Optional[int] = None
    messaging: List[MessagingEvent] = Field(default_factory=list)


class WebhookPayload(_WebhookModel):
    """Top-level webhook delivery"""
    object: str
    entry: List[WebhookEntry] = Field(default_factory=list)

    def events(self) -> List[MessagingEvent]:
        """All messaging events of the batch, in delivery order"""
        return [event for entry in self.entry for event in entry.messaging]


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the platform"""
    status: str = "EVENT_RECEIVED"
    events: int = 0
