"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the endfield-codes application.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., DISCORD_WEBHOOK_URL).
    Code-watch tuning lives in ``src.codes.config.CodeWatchConfig``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Persistence (code state + lease file)
    data_path: str = Field(default="data", min_length=1)

    # Discord
    discord_webhook_url: str | None = None

    # Telegram
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None
    telegram_thread_id: int | None = None

    # Notification HTTP timeout
    notify_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)

    # Observability
    metrics_port: int = 8000

    @field_validator("telegram_thread_id", mode="before")
    @classmethod
    def empty_thread_id_is_none(cls, value):
        """Treat a blank TELEGRAM_THREAD_ID as unset."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def discord_configured(self) -> bool:
        """Check if a Discord webhook is configured."""
        return bool(self.discord_webhook_url)

    @property
    def telegram_configured(self) -> bool:
        """Check if Telegram delivery is configured."""
        return bool(self.telegram_bot_token) and bool(self.telegram_chat_id)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
