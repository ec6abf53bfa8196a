"""Shared fixtures for the relay test suite."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from src.config.constants import SenderAction
from src.config.settings import Settings
from src.core.exceptions import ChannelDeliveryError
from src.models.conversation import Turn
from src.repositories.snapshot_repository import InMemorySnapshotRepository
from src.services.service_container import ServiceContainer
from src.utils.metrics import RelayMetrics

USER_ID = "1234567890"
OTHER_USER_ID = "9876543210"
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeChannel:
    """Records outbound traffic instead of calling the Send API"""

    def __init__(self):
        self.texts: List[Tuple[str, str]] = []
        self.actions: List[Tuple[str, str]] = []
        self.fail = False
        self.closed = False

    async def send_text(self, recipient: str, text: str):
        self.texts.append((recipient, text))

    async def send_action(self, recipient: str, action: SenderAction):
        self.actions.append((recipient, SenderAction(action).value))

    async def send_chunks(self, recipient: str, chunks: Sequence[str]) -> int:
        if self.fail:
            raise ChannelDeliveryError(
                channel="messenger",
                recipient=recipient,
                delivery_error="Send API error: 500",
                is_permanent=False
            )
        for chunk in chunks:
            await self.send_text(recipient, chunk)
        return len(chunks)

    def texts_for(self, recipient: str) -> List[str]:
        return [text for to, text in self.texts if to == recipient]

    async def close(self) -> None:
        self.closed = True


class FakeModel:
    """Returns canned replies and records the history of each call"""

    def __init__(self, reply: Optional[str] = "Hello from the model."):
        self.reply = reply
        self.error: Optional[Exception] = None
        self.calls: List[List[Turn]] = []
        self.closed = False

    async def generate(self, history: Sequence[Turn]) -> Optional[str]:
        self.calls.append(list(history))
        if self.error is not None:
            raise self.error
        return self.reply

    async def close(self) -> None:
        self.closed = True


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "PAGE_ACCESS_TOKEN": "page-token",
        "VERIFY_TOKEN": "verify-me",
        "APP_SECRET": "",
        "GEMINI_API_KEY": "model-key",
        "MEMORY_FILE": "",
        "TYPING_DELAY_SECONDS": 0.0,
        "LOG_FORMAT": "text",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def text_event(sender_id: str, text: str, **message: Any) -> Dict[str, Any]:
    return {
        "sender": {"id": sender_id},
        "recipient": {"id": "555"},
        "timestamp": 1714564800000,
        "message": {"mid": "m_1", "text": text, **message},
    }


def page_payload(*events: Dict[str, Any]) -> Dict[str, Any]:
    return {"object": "page", "entry": [{"id": "555", "time": 1714564800000, "messaging": list(events)}]}


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def repository() -> InMemorySnapshotRepository:
    return InMemorySnapshotRepository()


@pytest.fixture
def container(settings, repository, channel, model) -> ServiceContainer:
    return ServiceContainer(
        settings,
        repository=repository,
        channel=channel,
        model=model,
        metrics=RelayMetrics()
    )
