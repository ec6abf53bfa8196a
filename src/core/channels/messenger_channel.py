"""
Facebook Messenger Send API channel implementation.

Delivers text messages and sender actions (typing indicators) to
page-scoped user ids through the Graph API ``me/messages`` endpoint,
authenticated with the page access token as a query credential.
"""

import asyncio
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx

from src.config.constants import SenderAction
from src.core.channels.base_channel import BaseChannel, ChannelConfig, ChannelResponse
from src.core.exceptions import ChannelDeliveryError, ChannelRateLimitError
from src.models.types import ChannelType

_PSID_PATTERN = re.compile(r"^\d{1,64}$")


class MessengerChannel(BaseChannel):
    """Messenger Send API channel implementation."""

    def __init__(self, config: ChannelConfig, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)

        self.messages_url = (
            f"{config.api_base_url.rstrip('/')}/{config.api_version}/me/messages"
        )

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=config.timeout_seconds,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            headers={
                "Content-Type": "application/json",
                "User-Agent": "MessengerRelay/1.0"
            }
        )

        if not config.api_token:
            self.logger.warning("Page access token is not configured, sends will fail")

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.MESSENGER

    async def send_text(self, recipient: str, text: str) -> ChannelResponse:
        """Send a plain text message."""
        problem = self.validate_text(text)
        if problem:
            self.logger.warning("Refusing to send message", recipient=recipient, reason=problem)
            return self._create_error_response("INVALID_CONTENT", problem, recipient, is_retryable=False)

        return await self._post(
            {"recipient": {"id": recipient}, "message": {"text": text}},
            recipient
        )

    async def send_action(self, recipient: str, action: SenderAction) -> ChannelResponse:
        """Show or hide the typing indicator."""
        return await self._post(
            {"recipient": {"id": recipient}, "sender_action": SenderAction(action).value},
            recipient
        )

    async def send_chunks(self, recipient: str, chunks: Sequence[str]) -> int:
        """
        Send chunks in order, pacing them with the typing indicator.

        A chunk that is not delivered does not stop the ones after it.

        Raises:
            ChannelDeliveryError: After all chunks were attempted, if any failed
        """
        delivered = 0
        failures: List[ChannelResponse] = []
        for index, chunk in enumerate(chunks):
            if index > 0 and self.config.supports_typing_indicators:
                await self.send_action(recipient, SenderAction.TYPING_ON)
                if self.config.typing_delay_seconds:
                    await asyncio.sleep(self.config.typing_delay_seconds)

            response = await self.send_text(recipient, chunk)
            if response.success:
                delivered += 1
            else:
                self.logger.warning(
                    "Chunk not delivered, continuing",
                    recipient=recipient,
                    chunk_index=index,
                    chunk_length=len(chunk),
                    error_code=response.error_code
                )
                failures.append(response)

        if failures:
            first = failures[0]
            raise ChannelDeliveryError(
                channel=self.channel_type.value,
                recipient=recipient,
                delivery_error=(
                    f"{len(failures)} of {len(chunks)} chunks failed: "
                    f"{first.error_message or first.error_code or 'unknown error'}"
                ),
                is_permanent=all(not failure.is_retryable for failure in failures),
                delivered=delivered
            )

        return delivered

    def validate_recipient(self, recipient: str) -> bool:
        """Page-scoped ids are numeric strings."""
        return bool(recipient and _PSID_PATTERN.match(recipient))

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def _post(self, payload: Dict[str, Any], recipient: str) -> ChannelResponse:
        start = datetime.now(timezone.utc)

        if not self.config.api_token:
            return self._create_error_response(
                "NOT_CONFIGURED",
                "Page access token is not configured",
                recipient,
                is_retryable=False
            )

        if not self.validate_recipient(recipient):
            self.logger.warning("Invalid Messenger recipient", recipient=recipient)
            return self._create_error_response(
                "INVALID_RECIPIENT",
                f"Invalid Messenger recipient: {recipient}",
                recipient,
                is_retryable=False
            )

        try:
            response = await self.http_client.post(
                self.messages_url,
                params={"access_token": self.config.api_token},
                json=payload,
                timeout=self.config.timeout_seconds
            )

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                raise ChannelRateLimitError(
                    channel=self.channel_type.value,
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
                )

            processing_time = self._calculate_processing_time(start)

            if response.is_success:
                data = self._json_body(response)
                self.update_metrics(True, processing_time)
                return self._create_success_response(
                    platform_message_id=data.get("message_id"),
                    recipient=recipient,
                    status_code=response.status_code,
                    processing_time_ms=processing_time
                )

            error_code = "API_ERROR"
            error_message = f"Send API error: {response.status_code}"
            error = self._json_body(response).get("error")
            if isinstance(error, dict):
                error_message = error.get("message", error_message)
                if error.get("code") is not None:
                    error_code = f"API_ERROR_{error['code']}"

            self.update_metrics(False, processing_time, error_code)
            self.logger.error(
                "Send API request failed",
                recipient=recipient,
                status_code=response.status_code,
                error_code=error_code,
                error_message=error_message
            )
            return self._create_error_response(
                error_code,
                error_message,
                recipient,
                is_retryable=response.status_code >= 500,
                status_code=response.status_code,
                processing_time_ms=processing_time
            )

        except ChannelRateLimitError as e:
            processing_time = self._calculate_processing_time(start)
            self.metrics.rate_limit_hits += 1
            self.update_metrics(False, processing_time, e.error_code)
            self.logger.warning("Send API rate limited", recipient=recipient, retry_after=e.retry_after)
            return self._create_error_response(
                e.error_code,
                e.message,
                recipient,
                is_retryable=True,
                status_code=429,
                processing_time_ms=processing_time
            )

        except httpx.TimeoutException:
            processing_time = self._calculate_processing_time(start)
            self.update_metrics(False, processing_time, "TIMEOUT")
            self.logger.error(
                "Send API timeout",
                recipient=recipient,
                timeout_seconds=self.config.timeout_seconds
            )
            return self._create_error_response(
                "TIMEOUT",
                f"Send API request timed out after {self.config.timeout_seconds}s",
                recipient,
                is_retryable=True,
                processing_time_ms=processing_time
            )

        except httpx.HTTPError as e:
            processing_time = self._calculate_processing_time(start)
            self.update_metrics(False, processing_time, "SEND_FAILED")
            self.logger.error(
                "Send API request error",
                recipient=recipient,
                error=str(e),
                error_type=type(e).__name__
            )
            return self._create_error_response(
                "SEND_FAILED",
                f"Failed to send Messenger message: {e}",
                recipient,
                is_retryable=True,
                processing_time_ms=processing_time
            )

    @staticmethod
    def _json_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
