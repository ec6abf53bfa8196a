"""
Application constants and enumerations.

This module defines all constant values, user-facing strings, and
configuration defaults used throughout the Messenger Relay Service.
"""

from enum import Enum
from typing import Dict, Tuple

# Service Information
SERVICE_NAME = "messenger-relay"
SERVICE_VERSION = "1.0.0"
SERVICE_DESCRIPTION = "Facebook Messenger to Gemini chat relay"

# Messenger platform
PAGE_OBJECT = "page"
SUBSCRIBE_MODE = "subscribe"
SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="
GET_STARTED_PAYLOAD = "GET_STARTED"
MESSENGER_MAX_MESSAGE_LENGTH = 2000

# Timeout Configuration (in seconds)
DEFAULT_MODEL_TIMEOUT = 30
DEFAULT_SEND_TIMEOUT = 10
SHUTDOWN_TIMEOUT = 10

# Memory defaults (in seconds unless noted)
DEFAULT_RETENTION_SECONDS = 3600
DEFAULT_CLEANUP_INTERVAL = 300
DEFAULT_MAX_TURNS_PER_USER = 20

# Rate limiting defaults
DEFAULT_RATE_LIMIT_WINDOW = 60
DEFAULT_RATE_LIMIT_MAX = 30


class SenderAction(str, Enum):
    """Sender actions accepted by the Send API."""
    TYPING_ON = "typing_on"
    TYPING_OFF = "typing_off"


class Command(str, Enum):
    """Chat commands handled without calling the model."""
    ID = "id"
    RESET = "reset"
    HELP = "help"


# User-facing replies
DEFAULT_BOT_NAME = "X.AI"
DEFAULT_GREETING = (
    "👋 Hi! I'm {bot_name}, an AI assistant. Ask me anything and I'll do my best to help. "
    "Type 'help' to see what else I can do."
)
RATE_LIMIT_NOTICE = "⏳ You're sending messages too quickly. Please wait a moment and try again."
MODEL_ERROR_MESSAGE = "⚠️ Sorry, I couldn't reach my brain just now. Please try again in a bit."
NO_REPLY_MESSAGE = "🤖 I don't have an answer for that one."
ATTACHMENT_NOTICE = "📎 I can only read text messages for now. Please describe it in words."
RESET_CONFIRMATION = "🧹 Done! I've forgotten our conversation. Let's start fresh."
ID_REPLY = "🪪 Your PSID is: {sender_id}"
HELP_TEXT = (
    "Here's what I understand:\n\n"
    "help - show this message\n"
    "reset - forget our conversation so far\n"
    "id - show your Messenger ID\n\n"
    "Anything else goes straight to the AI."
)

# Role spellings used by other providers and older snapshots
EXTERNAL_MODEL_ROLES: Tuple[str, ...] = ("model", "assistant", "bot")


class ErrorCategory(str, Enum):
    """Error categories for monitoring."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    EXTERNAL = "external"
    INTERNAL = "internal"


ERROR_MESSAGES: Dict[str, str] = {
    "VALIDATION_ERROR": "The request payload is invalid.",
    "VERIFICATION_FAILED": "Webhook verification failed.",
    "UNSUPPORTED_PAYLOAD": "Unsupported webhook object.",
    "INTERNAL_ERROR": "An internal error occurred.",
}
