"""Tests for CodeWatchConfig and Settings."""

import pytest
from pydantic import ValidationError

from src.codes.config import DEFAULT_SOURCE_IDS, CodeWatchConfig
from src.codes.schemas import CodeWatchMode
from src.config.settings import Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "CODE_WATCH_ENABLED",
        "CODE_WATCH_MODE",
        "CODE_WATCH_SOURCES",
        "CODE_WATCH_INTERVAL_MINUTES",
        "CODE_WATCH_LEASE_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


class TestCodeWatchConfig:
    """Tests for CodeWatchConfig defaults, env and validation."""

    def test_defaults(self):
        config = CodeWatchConfig()

        assert config.enabled is False
        assert config.mode == CodeWatchMode.ACTIVE
        assert config.interval_minutes == 45
        assert config.http_timeout_ms == 10_000
        assert config.lease_seconds == 120
        assert config.max_requests_per_hour == 12
        assert config.source_ids == list(DEFAULT_SOURCE_IDS)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CODE_WATCH_ENABLED", "true")
        monkeypatch.setenv("CODE_WATCH_MODE", "passive")
        monkeypatch.setenv("CODE_WATCH_SOURCES", "destructoid")

        config = CodeWatchConfig()

        assert config.enabled is True
        assert config.mode == CodeWatchMode.PASSIVE
        assert config.source_ids == ["destructoid"]

    def test_source_ids_are_trimmed_and_deduplicated(self):
        config = CodeWatchConfig(sources=" game8 , destructoid,game8,, ")
        assert config.source_ids == ["game8", "destructoid"]

    def test_empty_sources_fall_back_to_defaults(self):
        config = CodeWatchConfig(sources=" , ")
        assert config.source_ids == list(DEFAULT_SOURCE_IDS)

    def test_lease_below_minimum_rejected(self):
        with pytest.raises(ValidationError):
            CodeWatchConfig(lease_seconds=10)

    def test_timeout_below_minimum_rejected(self):
        with pytest.raises(ValidationError):
            CodeWatchConfig(http_timeout_ms=500)


class TestSettings:
    """Tests for channel detection in Settings."""

    def test_discord_configured(self):
        assert Settings(discord_webhook_url="https://discord.com/api/webhooks/1/x").discord_configured
        assert not Settings(discord_webhook_url=None).discord_configured

    def test_telegram_needs_token_and_chat(self):
        assert not Settings(telegram_bot_token="t", telegram_chat_id=None).telegram_configured
        assert Settings(telegram_bot_token="t", telegram_chat_id="42").telegram_configured

    def test_blank_thread_id_is_none(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_THREAD_ID", "")
        assert Settings(_env_file=None).telegram_thread_id is None

    def test_thread_id_parsed_from_env(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_THREAD_ID", "42")
        assert Settings(_env_file=None).telegram_thread_id == 42
