"""
Message Service

Handles one inbound Messenger event end to end: allow-list and rate-limit
checks, the one-time greeting, chat commands, conversation memory, the
language model call, and delivery of the cleaned, chunked reply.

Events from the same user are processed one at a time; a failure while
handling one event is logged and never reaches other events or users.
"""

import asyncio
from datetime import datetime
from typing import Optional, Protocol, Sequence, Tuple

from src.config.constants import (
    ATTACHMENT_NOTICE,
    GET_STARTED_PAYLOAD,
    HELP_TEXT,
    ID_REPLY,
    MODEL_ERROR_MESSAGE,
    NO_REPLY_MESSAGE,
    RATE_LIMIT_NOTICE,
    RESET_CONFIRMATION,
    Command,
    SenderAction,
)
from src.config.settings import Settings
from src.core.channels.base_channel import BaseChannel
from src.core.exceptions import ChannelDeliveryError
from src.models.conversation import Turn, utc_now
from src.models.schemas.webhook_schemas import MessagingEvent
from src.models.types import EventKind, Role, UserId
from src.repositories.rate_limit_repository import RateLimitRepository
from src.services.base_service import BaseService
from src.services.conversation_service import ConversationStore
from src.services.exceptions import ServiceError
from src.services.greeting_service import GreetingTracker
from src.services.user_lock import KeyedLock
from src.utils.formatters import chunk_message, clean_response
from src.utils.metrics import RelayMetrics

_IGNORED_KINDS = (EventKind.ECHO, EventKind.RECEIPT, EventKind.UNKNOWN)


class ReplyModel(Protocol):
    """Anything that can continue a conversation"""

    async def generate(self, history: Sequence[Turn]) -> Optional[str]:
        ...


class MessageService(BaseService):
    """Dispatcher for inbound messaging events"""

    def __init__(
            self,
            settings: Settings,
            store: ConversationStore,
            greetings: GreetingTracker,
            rate_limiter: RateLimitRepository,
            channel: BaseChannel,
            model: ReplyModel,
            locks: Optional[KeyedLock] = None,
            metrics: Optional[RelayMetrics] = None
    ):
        super().__init__()
        self.settings = settings
        self.store = store
        self.greetings = greetings
        self.rate_limiter = rate_limiter
        self.channel = channel
        self.model = model
        self.locks = locks or KeyedLock()
        self.metrics = metrics
        self.messages_processed = 0

    async def handle_event(self, event: MessagingEvent, now: Optional[datetime] = None) -> bool:
        """
        Process one messaging event

        Args:
            event: Parsed ``entry[].messaging[]`` item
            now: Clock override used for memory and rate limiting

        Returns:
            True if the event was handled, False if it was ignored or failed
        """
        kind = event.kind
        sender_id = event.sender_id

        if self.metrics:
            self.metrics.webhook_events.labels(kind=kind.value).inc()

        if not sender_id or kind in _IGNORED_KINDS:
            self.logger.debug("Ignoring messaging event", kind=kind.value, user_id=sender_id)
            return False

        if not self.is_allowed_sender(sender_id):
            self.logger.warning("Rejected sender not on allow-list", user_id=sender_id)
            return False

        async with self.locks.hold(sender_id):
            try:
                await self._dispatch(sender_id, event, now)
                return True
            except Exception as e:
                self.logger.error(
                    "Failed to handle messaging event",
                    user_id=sender_id,
                    kind=kind.value,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True
                )
                return False

    def is_allowed_sender(self, sender_id: UserId) -> bool:
        allowed = self.settings.allowed_sender_ids
        return not allowed or sender_id in allowed

    @staticmethod
    def parse_command(text: str) -> Optional[Command]:
        """Recognise ``help``, ``reset`` and ``id`` (an optional leading slash is allowed)"""
        normalized = text.strip().lower().lstrip("/").strip()
        try:
            return Command(normalized)
        except ValueError:
            return None

    async def _dispatch(self, sender_id: UserId, event: MessagingEvent, clock: Optional[datetime]) -> None:
        self.messages_processed += 1
        now = clock or utc_now()
        kind = event.kind

        if not self.rate_limiter.allow(sender_id, now):
            if self.metrics:
                self.metrics.rate_limited.inc()
            await self._reply(sender_id, RATE_LIMIT_NOTICE)
            return

        if kind == EventKind.POSTBACK:
            payload = (event.postback.payload or "").strip()
            if payload == GET_STARTED_PAYLOAD:
                await self._greet_once(sender_id)
                return
            text = payload or (event.postback.title or "").strip()
        elif kind == EventKind.ATTACHMENT:
            await self._greet_once(sender_id)
            await self._reply(sender_id, ATTACHMENT_NOTICE)
            return
        else:
            text = event.message.text.strip()

        if not text:
            return

        await self._greet_once(sender_id)

        command = self.parse_command(text)
        if command is not None:
            await self._handle_command(sender_id, command)
            return

        await self._converse(sender_id, text, clock)

    async def _converse(self, sender_id: UserId, text: str, clock: Optional[datetime]) -> None:
        self.store.append(sender_id, Role.USER, text, clock)
        history = self.store.history(sender_id, clock)

        await self.channel.send_action(sender_id, SenderAction.TYPING_ON)
        outgoing, model_reply = await self._ask_model(sender_id, history)

        if model_reply is not None:
            self.store.append(sender_id, Role.MODEL, model_reply, clock)

        await self._reply(sender_id, clean_response(outgoing) or NO_REPLY_MESSAGE)

    async def _ask_model(self, sender_id: UserId, history: Sequence[Turn]) -> Tuple[str, Optional[str]]:
        """
        Returns:
            (text to send, model reply to remember or None)
        """
        try:
            reply = await asyncio.wait_for(
                self.model.generate(history),
                timeout=self.settings.MODEL_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            self._count_model_error("TIMEOUT")
            self.logger.error(
                "Model call timed out",
                user_id=sender_id,
                timeout_seconds=self.settings.MODEL_TIMEOUT_SECONDS
            )
            return MODEL_ERROR_MESSAGE, None
        except ServiceError as e:
            self._count_model_error(e.error_code)
            self.handle_service_error(e, "generate_reply", user_id=sender_id, history_turns=len(history))
            return MODEL_ERROR_MESSAGE, None
        except Exception as e:
            self._count_model_error("UNEXPECTED")
            self.logger.error(
                "Unexpected model failure",
                user_id=sender_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True
            )
            return MODEL_ERROR_MESSAGE, None

        if reply is None or not reply.strip():
            return NO_REPLY_MESSAGE, None

        return reply, reply

    async def _handle_command(self, sender_id: UserId, command: Command) -> None:
        self.log_operation("command", user_id=sender_id, command=command.value)

        if command == Command.ID:
            await self._reply(sender_id, ID_REPLY.format(sender_id=sender_id))
        elif command == Command.RESET:
            self.store.reset(sender_id)
            await self._reply(sender_id, RESET_CONFIRMATION)
        elif command == Command.HELP:
            await self._reply(sender_id, HELP_TEXT)

    async def _greet_once(self, sender_id: UserId) -> None:
        if self.greetings.has_greeted(sender_id):
            return
        self.greetings.mark_greeted(sender_id)
        await self._reply(sender_id, self.settings.greeting_text)

    async def _reply(self, sender_id: UserId, text: str) -> int:
        """Chunk and send ``text``; returns the number of chunks delivered"""
        chunks = chunk_message(text, self.settings.MAX_MESSAGE_LENGTH)
        delivered = 0
        try:
            delivered = await self.channel.send_chunks(sender_id, chunks)
        except ChannelDeliveryError as e:
            delivered = e.delivered
            if self.metrics:
                self.metrics.send_failures.inc()
            self.logger.error(
                "Reply delivery failed",
                user_id=sender_id,
                chunks=len(chunks),
                delivered=delivered,
                error=e.message,
                is_permanent=e.is_permanent
            )
        finally:
            await self.channel.send_action(sender_id, SenderAction.TYPING_OFF)

        if self.metrics and delivered:
            self.metrics.replies_sent.inc(delivered)
        return delivered

    def _count_model_error(self, error_code: str) -> None:
        if self.metrics:
            self.metrics.model_errors.labels(error_code=error_code).inc()
