"""
Webhook API Routes
Endpoints for the Messenger webhook subscription handshake and event deliveries.
"""

import json
from typing import Optional

import structlog
from fastapi import APIRouter, Header, Query, Request
from fastapi.responses import PlainTextResponse

from src.config.constants import SIGNATURE_HEADER
from src.dependencies import WebhookServiceDep
from src.exceptions.base_exceptions import UnsupportedPayloadError, VerificationError
from src.models.schemas.webhook_schemas import WebhookResponse
from src.services.exceptions import (
    UnsupportedPayloadError as UnsupportedPayloadServiceError,
    ValidationError as ValidationServiceError,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.get(
    "",
    response_class=PlainTextResponse,
    summary="Messenger webhook verification",
    description="Answer the subscription challenge when the verify token matches"
)
async def verify_webhook(
        webhook_service: WebhookServiceDep,
        hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
        hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
        hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
) -> str:
    """
    Handle the Messenger subscription handshake

    Returns:
        The challenge string, verbatim

    Raises:
        VerificationError: If the mode or token does not match
    """
    if not webhook_service.verify_subscription(hub_mode, hub_verify_token):
        logger.warning("Webhook verification failed", hub_mode=hub_mode)
        raise VerificationError("Webhook verification failed", details={"hub_mode": hub_mode})

    logger.info("Webhook verified", challenge_length=len(hub_challenge or ""))
    return hub_challenge or ""


@router.post(
    "",
    response_model=WebhookResponse,
    summary="Messenger webhook handler",
    description="Receive messaging events for the page and reply to each sender"
)
async def receive_webhook(
        request: Request,
        webhook_service: WebhookServiceDep,
        x_hub_signature_256: Optional[str] = Header(default=None, alias=SIGNATURE_HEADER),
) -> WebhookResponse:
    """
    Handle a Messenger event delivery

    Every messaging event is processed before the acknowledgement is sent.

    Raises:
        VerificationError: If the delivery signature does not match
        UnsupportedPayloadError: If the body is not a page delivery
    """
    body = await request.body()

    if not webhook_service.verify_signature(body, x_hub_signature_256):
        logger.warning("Webhook signature mismatch", has_signature=x_hub_signature_256 is not None)
        raise VerificationError("Webhook signature mismatch")

    try:
        data = json.loads(body) if body else None
    except ValueError as e:
        logger.warning("Webhook body is not valid JSON", error=str(e))
        raise UnsupportedPayloadError("Webhook body is not valid JSON")

    try:
        payload = webhook_service.parse_payload(data)
    except (ValidationServiceError, UnsupportedPayloadServiceError) as e:
        logger.warning("Webhook payload rejected", error=str(e), error_code=e.error_code)
        raise UnsupportedPayloadError(str(e), caused_by=e)

    handled = await webhook_service.process_payload(payload)
    return WebhookResponse(events=handled)
