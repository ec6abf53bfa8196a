"""
Webhook Service

Verification of Messenger webhook subscriptions and deliveries, and
fan-out of a delivery's messaging events to the message service.
"""

import asyncio
import hashlib
import hmac
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from src.config.constants import PAGE_OBJECT, SIGNATURE_PREFIX, SUBSCRIBE_MODE
from src.config.settings import Settings
from src.models.schemas.webhook_schemas import WebhookPayload
from src.services.base_service import BaseService
from src.services.exceptions import UnsupportedPayloadError, ValidationError
from src.services.message_service import MessageService


class WebhookService(BaseService):
    """Messenger webhook verification and event fan-out"""

    def __init__(self, settings: Settings, message_service: MessageService):
        super().__init__()
        self.settings = settings
        self.message_service = message_service

    def verify_subscription(self, mode: Optional[str], token: Optional[str]) -> bool:
        """
        Check a ``GET /webhook`` subscription handshake

        Returns:
            True if the mode is a subscribe request and the token matches
        """
        expected = self.settings.VERIFY_TOKEN
        if not expected:
            self.logger.warning("Webhook verification attempted without a configured verify token")
            return False

        if mode != SUBSCRIBE_MODE or token is None:
            return False

        return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))

    def verify_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """
        Check the ``X-Hub-Signature-256`` header of a delivery

        Passes when no app secret is configured.
        """
        secret = self.settings.APP_SECRET
        if not secret:
            return True

        if not signature or not signature.startswith(SIGNATURE_PREFIX):
            return False

        expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(signature[len(SIGNATURE_PREFIX):], expected)

    def parse_payload(self, data: Any) -> WebhookPayload:
        """
        Validate a decoded delivery body

        Raises:
            ValidationError: If the body is not a webhook object
            UnsupportedPayloadError: If the object is not a page
        """
        if not isinstance(data, dict):
            raise ValidationError("Webhook body must be a JSON object", field="body")

        object_type = data.get("object")
        if object_type != PAGE_OBJECT:
            raise UnsupportedPayloadError(
                f"Unsupported webhook object: {object_type!r}",
                object_type=str(object_type)
            )

        try:
            return WebhookPayload.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Malformed webhook payload: {e.error_count()} errors", field="entry")

    async def process_payload(self, payload: WebhookPayload) -> int:
        """
        Dispatch every messaging event of the delivery

        Events run concurrently; the message service serializes events of
        the same user.

        Returns:
            Number of events handled
        """
        events = payload.events()
        if not events:
            return 0

        results = await asyncio.gather(
            *(self.message_service.handle_event(event) for event in events)
        )
        handled = sum(1 for result in results if result)

        self.logger.info(
            "Webhook delivery processed",
            entries=len(payload.entry),
            events=len(events),
            handled=handled
        )
        return handled
