"""
Service layer for the Messenger Relay Service.

- conversation_service: bounded per-user conversation memory
- greeting_service: one-time introduction tracking
- message_service: dispatcher for inbound messaging events
- model_service: generateContent client
- webhook_service: webhook verification and event fan-out
- service_container: ownership and lifecycle of relay state
"""

from src.services.conversation_service import ConversationStore
from src.services.greeting_service import GreetingTracker
from src.services.message_service import MessageService
from src.services.model_service import GeminiClient
from src.services.service_container import ServiceContainer
from src.services.user_lock import KeyedLock
from src.services.webhook_service import WebhookService
from src.services.exceptions import (
    ServiceError,
    ValidationError,
    UnsupportedPayloadError,
    ExternalServiceError,
    ModelError,
    RateLimitError,
    ConfigurationError,
)

__all__ = [
    "ConversationStore",
    "GreetingTracker",
    "MessageService",
    "GeminiClient",
    "ServiceContainer",
    "KeyedLock",
    "WebhookService",
    "ServiceError",
    "ValidationError",
    "UnsupportedPayloadError",
    "ExternalServiceError",
    "ModelError",
    "RateLimitError",
    "ConfigurationError",
]
