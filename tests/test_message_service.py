import asyncio
from datetime import timedelta

import pytest

from src.config.constants import (
    ATTACHMENT_NOTICE,
    HELP_TEXT,
    MODEL_ERROR_MESSAGE,
    NO_REPLY_MESSAGE,
    RATE_LIMIT_NOTICE,
    RESET_CONFIRMATION,
)
from src.models.schemas.webhook_schemas import MessagingEvent
from src.models.types import Role
from src.repositories.snapshot_repository import InMemorySnapshotRepository
from src.services.exceptions import ModelError
from src.services.message_service import MessageService
from src.services.service_container import ServiceContainer
from src.utils.metrics import RelayMetrics

from tests.conftest import (
    NOW,
    OTHER_USER_ID,
    USER_ID,
    FakeChannel,
    FakeModel,
    make_settings,
    text_event,
)


def event(sender_id=USER_ID, text="hi", **message):
    return MessagingEvent.model_validate(text_event(sender_id, text, **message))


def postback(payload, sender_id=USER_ID, title=None):
    return MessagingEvent.model_validate({
        "sender": {"id": sender_id},
        "recipient": {"id": "555"},
        "postback": {"payload": payload, "title": title},
    })


@pytest.fixture
def service(container) -> MessageService:
    return container.message_service


class TestConversationFlow:
    @pytest.mark.asyncio
    async def test_first_message_greets_then_replies(self, service, channel, model, settings):
        assert await service.handle_event(event(text="hi"), now=NOW) is True

        assert channel.texts_for(USER_ID) == [settings.greeting_text, "Hello from the model."]
        assert [(t.role, t.content) for t in model.calls[0]] == [(Role.USER, "hi")]
        assert service.messages_processed == 1

    @pytest.mark.asyncio
    async def test_follow_up_carries_history_without_second_greeting(self, service, channel, model, settings):
        await service.handle_event(event(text="hi"), now=NOW)
        await service.handle_event(event(text="and then?"), now=NOW + timedelta(seconds=5))

        assert channel.texts_for(USER_ID).count(settings.greeting_text) == 1
        assert [(t.role, t.content) for t in model.calls[1]] == [
            (Role.USER, "hi"),
            (Role.MODEL, "Hello from the model."),
            (Role.USER, "and then?"),
        ]
        assert service.store.turn_count == 4

    @pytest.mark.asyncio
    async def test_typing_indicator_wraps_model_call(self, service, channel):
        await service.handle_event(event(), now=NOW)

        actions = [action for _, action in channel.actions]
        assert "typing_on" in actions
        assert actions[-1] == "typing_off"

    @pytest.mark.asyncio
    async def test_stale_turns_are_not_sent_to_model(self, service, model):
        await service.handle_event(event(text="old question"), now=NOW - timedelta(hours=2))
        await service.handle_event(event(text="new question"), now=NOW)

        assert [t.content for t in model.calls[-1]] == ["new question"]

    @pytest.mark.asyncio
    async def test_markdown_is_cleaned_before_sending(self, service, channel, model):
        model.reply = "**Sure!** Here is a [link](https://example.com)."

        await service.handle_event(event(), now=NOW)

        assert channel.texts_for(USER_ID)[-1] == "Sure! Here is a link (https://example.com)."
        assert service.store.history(USER_ID, NOW)[-1].content == model.reply

    @pytest.mark.asyncio
    async def test_long_reply_is_chunked(self, channel, model):
        settings = make_settings(MAX_MESSAGE_LENGTH=40)
        container = ServiceContainer(settings, repository=InMemorySnapshotRepository(), channel=channel, model=model)
        container.greetings.mark_greeted(USER_ID)
        model.reply = "First sentence is here. Second sentence is here. Third one."

        await container.message_service.handle_event(event(), now=NOW)

        assert channel.texts_for(USER_ID) == [
            "First sentence is here.",
            "Second sentence is here. Third one.",
        ]


class TestRateLimiting:
    @pytest.mark.asyncio
    async def test_message_over_limit_gets_notice_without_model_call(self, service, channel, model, settings):
        for i in range(settings.RATE_LIMIT_MAX):
            await service.handle_event(event(text=f"m{i}"), now=NOW)
        calls = len(model.calls)

        await service.handle_event(event(text="one too many"), now=NOW)

        assert len(model.calls) == calls == settings.RATE_LIMIT_MAX
        assert channel.texts_for(USER_ID)[-1] == RATE_LIMIT_NOTICE
        assert "one too many" not in [t.content for t in service.store.history(USER_ID, NOW)]

    @pytest.mark.asyncio
    async def test_limit_is_per_user(self, model, channel):
        settings = make_settings(RATE_LIMIT_MAX=1)
        container = ServiceContainer(settings, repository=InMemorySnapshotRepository(), channel=channel, model=model)
        service = container.message_service

        await service.handle_event(event(USER_ID), now=NOW)
        await service.handle_event(event(USER_ID), now=NOW)
        await service.handle_event(event(OTHER_USER_ID), now=NOW)

        assert len(model.calls) == 2
        assert channel.texts_for(USER_ID)[-1] == RATE_LIMIT_NOTICE


class TestCommands:
    @pytest.mark.asyncio
    async def test_id_command(self, service, channel, model):
        await service.handle_event(event(text="id"), now=NOW)

        assert channel.texts_for(USER_ID)[-1] == f"🪪 Your PSID is: {USER_ID}"
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_reset_command_clears_memory(self, service, channel):
        await service.handle_event(event(text="remember this"), now=NOW)
        await service.handle_event(event(text="/Reset"), now=NOW)

        assert channel.texts_for(USER_ID)[-1] == RESET_CONFIRMATION
        assert USER_ID not in service.store

    @pytest.mark.asyncio
    async def test_help_command(self, service, channel, model):
        await service.handle_event(event(text=" HELP "), now=NOW)

        assert channel.texts_for(USER_ID)[-1] == HELP_TEXT
        assert model.calls == []

    def test_parse_command(self):
        assert MessageService.parse_command("/id").value == "id"
        assert MessageService.parse_command("help me") is None


class TestModelFailures:
    @pytest.mark.asyncio
    async def test_model_error_sends_apology_and_keeps_only_user_turn(self, container, service, channel, model):
        model.error = ModelError("Model API error: 500", model_name="gemini", status_code=500)

        assert await service.handle_event(event(text="hi"), now=NOW) is True

        assert channel.texts_for(USER_ID)[-1] == MODEL_ERROR_MESSAGE
        assert [t.role for t in service.store.history(USER_ID, NOW)] == [Role.USER]
        assert container.metrics.registry.get_sample_value(
            "relay_model_errors_total", {"error_code": "MODEL_ERROR"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_unexpected_model_failure_sends_apology(self, container, service, channel, model):
        model.error = AttributeError("'str' object has no attribute 'get'")

        assert await service.handle_event(event(text="hi"), now=NOW) is True

        assert channel.texts_for(USER_ID)[-1] == MODEL_ERROR_MESSAGE
        assert channel.actions[-1] == (USER_ID, "typing_off")
        assert [t.role for t in service.store.history(USER_ID, NOW)] == [Role.USER]
        assert container.metrics.registry.get_sample_value(
            "relay_model_errors_total", {"error_code": "UNEXPECTED"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_empty_reply_sends_fallback(self, service, channel, model):
        model.reply = "   "

        await service.handle_event(event(), now=NOW)

        assert channel.texts_for(USER_ID)[-1] == NO_REPLY_MESSAGE
        assert len(service.store.history(USER_ID, NOW)) == 1

    @pytest.mark.asyncio
    async def test_model_timeout(self, channel):
        class SlowModel(FakeModel):
            async def generate(self, history):
                await asyncio.sleep(1)
                return "too late"

        settings = make_settings(MODEL_TIMEOUT_SECONDS=0.01)
        container = ServiceContainer(
            settings, repository=InMemorySnapshotRepository(), channel=channel, model=SlowModel()
        )

        await container.message_service.handle_event(event(), now=NOW)

        assert channel.texts_for(USER_ID)[-1] == MODEL_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_delivery_failure_is_contained(self, container, service, channel):
        channel.fail = True

        assert await service.handle_event(event(), now=NOW) is True

        assert channel.actions[-1] == (USER_ID, "typing_off")
        assert container.metrics.registry.get_sample_value("relay_send_failures_total") >= 1.0
        assert len(service.store.history(USER_ID, NOW)) == 2


class TestEventKinds:
    @pytest.mark.asyncio
    async def test_echo_is_ignored(self, service, channel, model):
        assert await service.handle_event(event(is_echo=True), now=NOW) is False
        assert channel.texts == []
        assert service.messages_processed == 0

    @pytest.mark.asyncio
    async def test_get_started_greets_once(self, service, channel, settings, model):
        await service.handle_event(postback("GET_STARTED"), now=NOW)
        await service.handle_event(postback("GET_STARTED"), now=NOW)

        assert channel.texts_for(USER_ID) == [settings.greeting_text]
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_other_postback_is_treated_as_text(self, service, model):
        service.greetings.mark_greeted(USER_ID)

        await service.handle_event(postback("", title="Tell me a joke"), now=NOW)

        assert [t.content for t in model.calls[0]] == ["Tell me a joke"]

    @pytest.mark.asyncio
    async def test_attachment_gets_notice(self, service, channel, model):
        attachment_event = MessagingEvent.model_validate({
            "sender": {"id": USER_ID},
            "recipient": {"id": "555"},
            "message": {"mid": "m_2", "attachments": [{"type": "image", "payload": {"url": "https://x"}}]},
        })

        await service.handle_event(attachment_event, now=NOW)

        assert channel.texts_for(USER_ID)[-1] == ATTACHMENT_NOTICE
        assert model.calls == []


class TestAllowList:
    @pytest.mark.asyncio
    async def test_unlisted_sender_is_dropped(self, channel, model):
        settings = make_settings(ALLOWED_SENDER_IDS=f" {USER_ID} ,")
        container = ServiceContainer(
            settings, repository=InMemorySnapshotRepository(), channel=channel, model=model, metrics=RelayMetrics()
        )
        service = container.message_service

        assert await service.handle_event(event(OTHER_USER_ID), now=NOW) is False
        assert await service.handle_event(event(USER_ID), now=NOW) is True

        assert channel.texts_for(OTHER_USER_ID) == []
        assert len(model.calls) == 1


@pytest.mark.asyncio
async def test_concurrent_events_of_one_user_are_serialized(service, model):
    service.greetings.mark_greeted(USER_ID)

    await asyncio.gather(*(service.handle_event(event(text=f"m{i}"), now=NOW) for i in range(3)))

    contents = [t.content for t in service.store.history(USER_ID, NOW)]
    assert contents[0::2] == ["m0", "m1", "m2"]
    assert all(c == "Hello from the model." for c in contents[1::2])
