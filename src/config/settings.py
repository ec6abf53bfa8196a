"""
Application configuration settings using Pydantic Settings.

This module provides centralized configuration management with
environment variable support, validation, and type safety.
"""

from datetime import timedelta
from enum import Enum
from functools import lru_cache
from typing import FrozenSet, List

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.config.constants import (
    DEFAULT_BOT_NAME,
    DEFAULT_CLEANUP_INTERVAL,
    DEFAULT_GREETING,
    DEFAULT_MAX_TURNS_PER_USER,
    DEFAULT_MODEL_TIMEOUT,
    DEFAULT_RATE_LIMIT_MAX,
    DEFAULT_RATE_LIMIT_WINDOW,
    DEFAULT_RETENTION_SECONDS,
    DEFAULT_SEND_TIMEOUT,
    MESSENGER_MAX_MESSAGE_LENGTH,
)


class Environment(str, Enum):
    """Application environment options."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        validate_assignment=True,
        extra="ignore",
    )

    # Environment Configuration
    ENVIRONMENT: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Server Configuration
    HOST: str = Field(
        default="0.0.0.0",
        description="Server host address"
    )
    PORT: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Server port number"
    )

    # Logging Configuration
    LOG_LEVEL: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level"
    )
    LOG_FORMAT: str = Field(
        default="json",
        pattern=r"^(json|text)$",
        description="Log output format"
    )

    # Messenger Configuration
    PAGE_ACCESS_TOKEN: str = Field(
        default="",
        description="Facebook page access token used by the Send API"
    )
    VERIFY_TOKEN: str = Field(
        default="",
        description="Webhook subscription verify token"
    )
    APP_SECRET: str = Field(
        default="",
        description="App secret for X-Hub-Signature-256 checks (empty disables the check)"
    )
    GRAPH_API_URL: str = Field(
        default="https://graph.facebook.com",
        description="Graph API base URL"
    )
    GRAPH_API_VERSION: str = Field(
        default="v19.0",
        pattern=r"^v\d+\.\d+$",
        description="Graph API version"
    )
    ALLOWED_SENDER_IDS: str = Field(
        default="",
        description="Comma-separated PSIDs allowed to talk to the bot (empty allows everyone)"
    )

    # Language Model Configuration
    GEMINI_API_KEY: str = Field(
        default="",
        description="Generative Language API key"
    )
    GEMINI_MODEL: str = Field(
        default="gemini-1.5-flash",
        min_length=1,
        description="Model identifier"
    )
    GEMINI_API_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Generative Language API base URL"
    )
    SYSTEM_PROMPT: str = Field(
        default="",
        description="Optional system instruction sent with every request"
    )

    # Persona
    BOT_NAME: str = Field(
        default=DEFAULT_BOT_NAME,
        min_length=1,
        max_length=64,
        description="Name used in the greeting"
    )
    GREETING_MESSAGE: str = Field(
        default=DEFAULT_GREETING,
        min_length=1,
        description="One-time introduction; may reference {bot_name}"
    )

    # Memory Configuration
    MEMORY_FILE: str = Field(
        default="data/memory.json",
        description="Conversation snapshot file (empty keeps memory in-process only)"
    )
    MEMORY_RETENTION_SECONDS: int = Field(
        default=DEFAULT_RETENTION_SECONDS,
        ge=1,
        le=604800,  # 1 week
        description="Maximum age of a remembered turn"
    )
    MAX_TURNS_PER_USER: int = Field(
        default=DEFAULT_MAX_TURNS_PER_USER,
        ge=1,
        le=1000,
        description="Maximum remembered turns per user"
    )
    CLEANUP_INTERVAL_SECONDS: int = Field(
        default=DEFAULT_CLEANUP_INTERVAL,
        ge=1,
        le=86400,
        description="Interval of the expired-memory sweep"
    )

    # Outbound formatting
    MAX_MESSAGE_LENGTH: int = Field(
        default=MESSENGER_MAX_MESSAGE_LENGTH,
        ge=1,
        le=MESSENGER_MAX_MESSAGE_LENGTH,
        description="Maximum characters per outbound message"
    )
    TYPING_DELAY_SECONDS: float = Field(
        default=1.0,
        ge=0.0,
        le=10.0,
        description="Pause between chunks while the typing indicator is shown"
    )

    # Rate Limiting Configuration
    RATE_LIMIT_WINDOW_SECONDS: int = Field(
        default=DEFAULT_RATE_LIMIT_WINDOW,
        ge=1,
        le=86400,
        description="Fixed rate-limit window length"
    )
    RATE_LIMIT_MAX: int = Field(
        default=DEFAULT_RATE_LIMIT_MAX,
        ge=1,
        le=10000,
        description="Messages allowed per user per window"
    )

    # Timeouts
    MODEL_TIMEOUT_SECONDS: float = Field(
        default=DEFAULT_MODEL_TIMEOUT,
        gt=0,
        le=300,
        description="Language model request timeout"
    )
    SEND_TIMEOUT_SECONDS: float = Field(
        default=DEFAULT_SEND_TIMEOUT,
        gt=0,
        le=60,
        description="Send API request timeout"
    )

    @model_validator(mode='after')
    def validate_environment_consistency(self):
        """Validate environment-specific consistency."""
        if self.ENVIRONMENT == Environment.PRODUCTION and self.DEBUG:
            raise ValueError("Debug mode should not be enabled in production")
        return self

    @property
    def allowed_sender_ids(self) -> FrozenSet[str]:
        """Parsed allow-list; empty means everyone is allowed."""
        return frozenset(
            sender.strip() for sender in self.ALLOWED_SENDER_IDS.split(",") if sender.strip()
        )

    @property
    def retention_window(self) -> timedelta:
        return timedelta(seconds=self.MEMORY_RETENTION_SECONDS)

    @property
    def greeting_text(self) -> str:
        return self.GREETING_MESSAGE.replace("{bot_name}", self.BOT_NAME)

    def missing_credentials(self) -> List[str]:
        """Names of required credentials that are not configured."""
        required = {
            "PAGE_ACCESS_TOKEN": self.PAGE_ACCESS_TOKEN,
            "VERIFY_TOKEN": self.VERIFY_TOKEN,
            "GEMINI_API_KEY": self.GEMINI_API_KEY,
        }
        return [name for name, value in required.items() if not value]

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == Environment.PRODUCTION

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == Environment.DEVELOPMENT


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached singleton).

    Returns:
        Settings: Configured application settings instance
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Force reload of application settings.

    Returns:
        Settings: New settings instance

    Note:
        This clears the cache and creates a new settings instance.
        Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
    return get_settings()
