"""
Request and response schemas for the HTTP surface.
"""

from src.models.schemas.webhook_schemas import (
    Attachment,
    Message,
    MessagingEvent,
    Participant,
    Postback,
    WebhookEntry,
    WebhookPayload,
    WebhookResponse,
)

__all__ = [
    "Attachment",
    "Message",
    "MessagingEvent",
    "Participant",
    "Postback",
    "WebhookEntry",
    "WebhookPayload",
    "WebhookResponse",
]
