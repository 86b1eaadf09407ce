"""Tests for the endfield-codes command line."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from src.cli import main
from src.codes.schemas import (
    CodeSourceTier,
    CodeWatchMode,
    CodeWatchRunReason,
    CodeWatchRunSummary,
    CodeWatchState,
    SkippedSource,
    TrackedCode,
    TrackedCodeSource,
)
from src.codes.store import CodeStore
from src.config.settings import get_settings

NOW = datetime(2026, 1, 22, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def data_path(tmp_path, monkeypatch):
    """Point the CLI at an empty data directory with no channels configured."""
    path = tmp_path / "data"
    monkeypatch.setenv("DATA_PATH", str(path))
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    for name in (
        "CODE_WATCH_ENABLED",
        "CODE_WATCH_SOURCES",
        "DISCORD_WEBHOOK_URL",
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_CHAT_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


def _tracked(code: str, notified: bool) -> TrackedCode:
    return TrackedCode(
        code=code,
        first_seen_at=NOW,
        last_seen_at=NOW,
        first_notified_at=NOW if notified else None,
        last_notified_at=NOW if notified else None,
        sources=[
            TrackedCodeSource(
                source_id="game8",
                source_name="Game8 Endfield Codes",
                source_url="https://game8.co",
                source_tier=CodeSourceTier.CURATED if notified else CodeSourceTier.COMMUNITY,
                first_seen_at=NOW,
                last_seen_at=NOW,
            )
        ],
    )


def _summary(**kwargs) -> CodeWatchRunSummary:
    return CodeWatchRunSummary(
        mode=CodeWatchMode.ACTIVE,
        reason=CodeWatchRunReason.MANUAL,
        started_at=NOW,
        finished_at=NOW,
        **kwargs,
    )


class TestSources:
    """Test the `sources` command."""

    def test_lists_builtin_sources(self, runner, data_path, monkeypatch):
        monkeypatch.setenv("CODE_WATCH_SOURCES", "game8")

        result = runner.invoke(main, ["sources"])

        assert result.exit_code == 0, result.output
        assert "* game8" in result.output
        assert "destructoid" in result.output
        assert "* destructoid" not in result.output
        assert "pocket_tactics" in result.output


class TestList:
    """Test the `list` command."""

    def test_empty_store(self, runner, data_path):
        result = runner.invoke(main, ["list"])

        assert result.exit_code == 0, result.output
        assert "No redeem codes have been tracked yet." in result.output

    def test_notified_only_by_default(self, runner, data_path):
        state = CodeWatchState()
        state.codes["ENDFIELD2025"] = _tracked("ENDFIELD2025", notified=True)
        state.codes["RUMOR12345"] = _tracked("RUMOR12345", notified=False)
        CodeStore(data_path).save(state)

        result = runner.invoke(main, ["list"])

        assert result.exit_code == 0, result.output
        assert "ENDFIELD2025" in result.output
        assert "Curated source" in result.output
        assert "RUMOR12345" not in result.output

    def test_all_includes_unnotified(self, runner, data_path):
        state = CodeWatchState()
        state.codes["RUMOR12345"] = _tracked("RUMOR12345", notified=False)
        CodeStore(data_path).save(state)

        result = runner.invoke(main, ["list", "--all"])

        assert "RUMOR12345" in result.output
        assert "Community-only (unverified)" in result.output

    def test_source_filter_without_matches(self, runner, data_path):
        state = CodeWatchState()
        state.codes["ENDFIELD2025"] = _tracked("ENDFIELD2025", notified=True)
        CodeStore(data_path).save(state)

        result = runner.invoke(main, ["list", "--source", "destructoid"])

        assert "No redeem codes have been tracked yet for destructoid." in result.output


class TestRun:
    """Test the `run` command."""

    def _patched_service(self, summary):
        service = MagicMock()
        service.run = AsyncMock(return_value=summary)
        return patch(
            "src.services.code_watch.create_code_watch_service", return_value=service
        ), service

    def test_json_summary(self, runner, data_path):
        summary = _summary(
            skipped_sources=[SkippedSource(source_id="all", reason="disabled")],
        )
        patcher, service = self._patched_service(summary)

        with patcher:
            result = runner.invoke(main, ["run", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["reason"] == "manual"
        assert data["skippedSources"] == [{"sourceId": "all", "reason": "disabled"}]
        service.run.assert_awaited_once_with(CodeWatchRunReason.MANUAL)

    def test_text_summary_lists_new_codes(self, runner, data_path):
        summary = _summary(
            checked_sources=["game8"],
            new_codes=[_tracked("ENDFIELD2025", notified=True)],
            total_known=1,
        )
        patcher, _ = self._patched_service(summary)

        with patcher:
            result = runner.invoke(main, ["run", "--reason", "scheduled"])

        assert result.exit_code == 0, result.output
        assert "Endfield Code Watch" in result.output
        assert "Checked Sources: game8" in result.output
        assert "ENDFIELD2025" in result.output

    def test_force_enables_watch(self, runner, data_path):
        patcher, _ = self._patched_service(_summary())

        with patcher as factory:
            runner.invoke(main, ["run", "--force", "--json"])

        config = factory.call_args.kwargs["config"]
        assert config.enabled is True

    def test_invalid_reason(self, runner, data_path):
        result = runner.invoke(main, ["run", "--reason", "whenever"])

        assert result.exit_code != 0


class TestStatus:
    """Test the `status` command."""

    def test_reports_paths_and_counts(self, runner, data_path):
        state = CodeWatchState()
        state.codes["ENDFIELD2025"] = _tracked("ENDFIELD2025", notified=True)
        CodeStore(data_path).save(state)

        result = runner.invoke(main, ["status"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["known_codes"] == 1
        assert data["notified_codes"] == 1
        assert data["lease"] is None
        assert data["state_path"].endswith("codes.json")
