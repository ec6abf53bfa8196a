from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.config.settings import Environment, Settings, get_settings, reload_settings

from tests.conftest import make_settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.PORT == 3000
    assert settings.MAX_TURNS_PER_USER == 20
    assert settings.retention_window == timedelta(hours=1)
    assert settings.RATE_LIMIT_MAX == 30
    assert settings.RATE_LIMIT_WINDOW_SECONDS == 60
    assert settings.allowed_sender_ids == frozenset()


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("PAGE_ACCESS_TOKEN", "from-env")
    monkeypatch.setenv("RATE_LIMIT_MAX", "5")

    settings = Settings(_env_file=None)

    assert settings.PAGE_ACCESS_TOKEN == "from-env"
    assert settings.RATE_LIMIT_MAX == 5


def test_allowed_sender_ids_are_parsed():
    settings = make_settings(ALLOWED_SENDER_IDS="111, 222,,")

    assert settings.allowed_sender_ids == frozenset({"111", "222"})


def test_greeting_uses_bot_name():
    settings = make_settings(BOT_NAME="Ada", GREETING_MESSAGE="Hi, I'm {bot_name}.")

    assert settings.greeting_text == "Hi, I'm Ada."


def test_missing_credentials():
    settings = make_settings(PAGE_ACCESS_TOKEN="", GEMINI_API_KEY="")

    assert settings.missing_credentials() == ["PAGE_ACCESS_TOKEN", "GEMINI_API_KEY"]


def test_debug_is_rejected_in_production():
    with pytest.raises(ValidationError):
        make_settings(ENVIRONMENT=Environment.PRODUCTION, DEBUG=True)


@pytest.mark.parametrize("field,value", [
    ("MAX_TURNS_PER_USER", 0),
    ("MAX_MESSAGE_LENGTH", 2001),
    ("MODEL_TIMEOUT_SECONDS", 0),
])
def test_out_of_range_values(field, value):
    with pytest.raises(ValidationError):
        make_settings(**{field: value})


def test_reload_settings_clears_cache(monkeypatch):
    monkeypatch.setenv("BOT_NAME", "First")
    first = reload_settings()
    monkeypatch.setenv("BOT_NAME", "Second")

    assert get_settings() is first
    assert reload_settings().BOT_NAME == "Second"
    get_settings.cache_clear()
