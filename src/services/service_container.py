"""
Service Container

Owns every piece of mutable relay state (conversation memory, greeted
users, rate windows, per-user locks) together with the outbound clients,
and manages their lifecycle. One container is created per application and
handed to request handlers through FastAPI dependencies.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from src.config.constants import SERVICE_NAME, SERVICE_VERSION
from src.config.settings import Settings
from src.core.channels.base_channel import BaseChannel, ChannelConfig
from src.core.channels.messenger_channel import MessengerChannel
from src.models.types import ChannelType
from src.repositories.rate_limit_repository import RateLimitConfig, RateLimitRepository
from src.repositories.snapshot_repository import SnapshotRepository, create_snapshot_repository
from src.services.conversation_service import ConversationStore
from src.services.greeting_service import GreetingTracker
from src.services.message_service import MessageService, ReplyModel
from src.services.model_service import GeminiClient
from src.services.user_lock import KeyedLock
from src.services.webhook_service import WebhookService
from src.utils.metrics import RelayMetrics


class ServiceContainer:
    """
    Relay state and services

    Components can be injected (tests pass fakes); anything not supplied is
    built from settings.
    """

    def __init__(
            self,
            settings: Settings,
            repository: Optional[SnapshotRepository] = None,
            channel: Optional[BaseChannel] = None,
            model: Optional[ReplyModel] = None,
            metrics: Optional[RelayMetrics] = None
    ):
        self.settings = settings
        self.logger = structlog.get_logger("ServiceContainer")
        self.metrics = metrics or RelayMetrics()

        self.store = ConversationStore(
            repository=repository or create_snapshot_repository(settings.MEMORY_FILE),
            retention=settings.retention_window,
            max_turns=settings.MAX_TURNS_PER_USER,
            metrics=self.metrics
        )
        self.greetings = GreetingTracker()
        self.rate_limiter = RateLimitRepository(
            RateLimitConfig(
                limit=settings.RATE_LIMIT_MAX,
                window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS
            )
        )
        self.locks = KeyedLock()

        self.channel = channel or MessengerChannel(
            ChannelConfig(
                channel_type=ChannelType.MESSENGER,
                api_token=settings.PAGE_ACCESS_TOKEN,
                api_base_url=settings.GRAPH_API_URL,
                api_version=settings.GRAPH_API_VERSION,
                max_message_length=settings.MAX_MESSAGE_LENGTH,
                timeout_seconds=settings.SEND_TIMEOUT_SECONDS,
                typing_delay_seconds=settings.TYPING_DELAY_SECONDS
            )
        )
        self.model = model or GeminiClient.from_settings(settings)

        self.message_service = MessageService(
            settings=settings,
            store=self.store,
            greetings=self.greetings,
            rate_limiter=self.rate_limiter,
            channel=self.channel,
            model=self.model,
            locks=self.locks,
            metrics=self.metrics
        )
        self.webhook_service = WebhookService(settings, self.message_service)

        self.started_at = time.monotonic()
        self._cleanup_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Load persisted memory and start the periodic sweep"""
        self.store.load()
        self.started_at = time.monotonic()
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._periodic_cleanup())
        self.logger.info(
            "Relay state initialized",
            active_users=self.store.active_user_count,
            cleanup_interval_seconds=self.settings.CLEANUP_INTERVAL_SECONDS
        )

    async def stop(self) -> None:
        """Stop the sweep, flush memory and close outbound clients"""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

        self.store.flush()

        for client in (self.channel, self.model):
            close = getattr(client, "close", None)
            if close is not None:
                await close()

        self.logger.info("Relay state flushed and clients closed")

    def run_cleanup(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """One sweep over memory and rate windows"""
        return {
            "turns_removed": self.store.sweep(now),
            "rate_windows_removed": self.rate_limiter.cleanup(now),
        }

    async def _periodic_cleanup(self) -> None:
        interval = self.settings.CLEANUP_INTERVAL_SECONDS
        while True:
            try:
                await asyncio.sleep(interval)
                self.run_cleanup()
            except asyncio.CancelledError:
                self.logger.info("Cleanup task cancelled")
                raise
            except Exception as e:
                self.logger.error("Cleanup task error", error=str(e), exc_info=True)

    def status(self) -> Dict[str, Any]:
        """Liveness payload for ``GET /``"""
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "status": "running",
            "uptime_seconds": round(time.monotonic() - self.started_at, 2),
            "active_users": self.store.active_user_count,
            "messages_processed": self.message_service.messages_processed,
            "stored_turns": self.store.turn_count,
            "greeted_users": self.greetings.greeted_count,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
