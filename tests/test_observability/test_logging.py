"""Tests for structured logging setup."""

import logging

import structlog

from src.config.settings import get_settings
from src.observability.logging import bind_context, clear_context, setup_logging


class TestLoggingContext:
    """Tests for bound context variables."""

    def test_bind_and_clear(self):
        bind_context(cycle=3, reason="scheduled")
        assert structlog.contextvars.get_contextvars() == {"cycle": 3, "reason": "scheduled"}

        clear_context()
        assert structlog.contextvars.get_contextvars() == {}


class TestSetupLogging:
    """Tests for logging configuration."""

    def test_noisy_libraries_are_quieted(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        get_settings.cache_clear()
        try:
            setup_logging()
        finally:
            get_settings.cache_clear()

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
