"""Pytest fixtures for endfield-codes tests."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from src.codes.config import CodeWatchConfig
from src.codes.schemas import (
    CodeCandidate,
    CodeSourceTier,
    SourceFetchContext,
    SourceFetchResult,
)
from src.codes.store import CodeStore
from src.config.settings import Settings


class FakeClock:
    """Deterministic, manually advanced clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeSource:
    """
    Stand-in for a CodeSourceAdapter.

    Each fetch pops the next scripted outcome: a SourceFetchResult is
    returned, an exception is raised. When the script runs out the last
    outcome repeats.
    """

    def __init__(
        self,
        id: str,
        tier: CodeSourceTier = CodeSourceTier.CURATED,
        outcomes: list | None = None,
        min_interval_ms: int = 0,
        max_requests_per_hour: int = 10,
    ):
        self.id = id
        self.name = f"{id.title()} Endfield Codes"
        self.url = f"https://{id}.example.com/codes"
        self.tier = tier
        self.min_interval_ms = min_interval_ms
        self.max_requests_per_hour = max_requests_per_hour
        self.outcomes = list(outcomes or [SourceFetchResult(http_status=200)])
        self.contexts: list[SourceFetchContext] = []

    def candidate(self, code: str, **kwargs) -> CodeCandidate:
        return CodeCandidate(
            code=code,
            source_id=self.id,
            source_name=self.name,
            source_url=self.url,
            source_tier=self.tier,
            **kwargs,
        )

    def result(self, *codes: str, **kwargs) -> SourceFetchResult:
        kwargs.setdefault("http_status", 200)
        return SourceFetchResult(
            fetched_url=self.url,
            candidates=[self.candidate(code) for code in codes],
            **kwargs,
        )

    async def fetch(self, context: SourceFetchContext) -> SourceFetchResult:
        self.contexts.append(context)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeNotifier:
    """Records payloads; optionally fails or raises."""

    name = "fake"

    def __init__(self, delivered: bool = True, error: Exception | None = None):
        self.delivered = delivered
        self.error = error
        self.payloads: list = []

    async def send(self, payload) -> bool:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return self.delivered


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 1, 22, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now: datetime) -> FakeClock:
    return FakeClock(fixed_now)


@pytest.fixture
def store(tmp_path) -> CodeStore:
    """Store rooted in a per-test temporary directory."""
    return CodeStore(tmp_path / "data")


@pytest.fixture
def metrics() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_source() -> Callable[..., FakeSource]:
    return FakeSource


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def make_notifier() -> Callable[..., FakeNotifier]:
    return FakeNotifier


@pytest.fixture
def watch_config() -> CodeWatchConfig:
    """Enabled, active config with the minimum lease."""
    return CodeWatchConfig(
        enabled=True,
        mode="active",
        lease_seconds=30,
        max_requests_per_hour=12,
        http_timeout_ms=5000,
    )


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings configured for testing, with no notification channels."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        data_path=str(tmp_path / "data"),
        discord_webhook_url=None,
        telegram_bot_token=None,
        telegram_chat_id=None,
    )
