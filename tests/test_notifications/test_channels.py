"""Tests for Discord, Telegram and composite notifiers."""

import json

import httpx
import pytest
import respx

from src.notifications.channels import (
    CompositeNotifier,
    DiscordWebhookNotifier,
    Notifier,
    TelegramNotifier,
    redact_webhook_url,
    split_message,
)
from src.notifications.formatting import WEBHOOK_USERNAME

WEBHOOK_URL = "https://discord.com/api/webhooks/123456/secret-token"
TELEGRAM_URL = "https://api.telegram.org/botTOKEN/sendMessage"


class _StubNotifier(Notifier):
    def __init__(self, name: str, result=True):
        self._name = name
        self._result = result
        self.sent = []

    @property
    def name(self) -> str:
        return self._name

    async def send(self, payload) -> bool:
        self.sent.append(payload)
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class TestRedactWebhookUrl:
    """Tests for redact_webhook_url."""

    def test_hides_token(self):
        assert redact_webhook_url(WEBHOOK_URL) == "https://discord.com/api/webhooks/123456/***"

    def test_other_urls_keep_path(self):
        assert redact_webhook_url("https://example.com/hook?x=1") == "https://example.com/hook"


class TestDiscordWebhookNotifier:
    """Tests for DiscordWebhookNotifier."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_string_payload_becomes_content(self):
        route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(204))
        notifier = DiscordWebhookNotifier(WEBHOOK_URL)

        assert await notifier.send("New code: ENDFIELD2025") is True

        body = json.loads(route.calls.last.request.content)
        assert body["content"] == "New code: ENDFIELD2025"
        assert body["username"] == WEBHOOK_USERNAME
        assert body["avatar_url"].startswith("https://")

    @pytest.mark.asyncio
    @respx.mock
    async def test_embed_payload_is_passed_through(self):
        route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(204))
        notifier = DiscordWebhookNotifier(WEBHOOK_URL)
        payload = {"embeds": [{"title": "Endfield Redemption Codes"}]}

        assert await notifier.send(payload) is True

        body = json.loads(route.calls.last.request.content)
        assert body["embeds"] == [{"title": "Endfield Redemption Codes"}]
        assert "username" not in payload

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status(self):
        respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(429))

        assert await DiscordWebhookNotifier(WEBHOOK_URL).send("hi") is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self):
        respx.post(WEBHOOK_URL).mock(side_effect=httpx.ConnectTimeout("slow"))

        assert await DiscordWebhookNotifier(WEBHOOK_URL).send("hi") is False

    def test_name(self):
        assert DiscordWebhookNotifier(WEBHOOK_URL).name == "discord"


class TestSplitMessage:
    """Tests for split_message."""

    def test_short_text_is_one_chunk(self):
        assert split_message("hello") == ["hello"]

    def test_empty_text(self):
        assert split_message("   ") == []

    def test_prefers_line_breaks(self):
        text = "a" * 6 + "\n" + "b" * 6
        assert split_message(text, limit=10) == ["a" * 6, "b" * 6]

    def test_hard_split_without_line_breaks(self):
        assert split_message("x" * 25, limit=10) == ["x" * 10, "x" * 10, "x" * 5]


class TestTelegramNotifier:
    """Tests for TelegramNotifier."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_plain_text(self):
        route = respx.post(TELEGRAM_URL).mock(return_value=httpx.Response(200, json={"ok": True}))
        notifier = TelegramNotifier("TOKEN", "-100123", thread_id=7)

        payload = {"embeds": [{"title": "Endfield Redemption Codes", "fields": [
            {"name": "Count", "value": "1"},
        ]}]}
        assert await notifier.send(payload) is True

        body = json.loads(route.calls.last.request.content)
        assert body["chat_id"] == "-100123"
        assert body["message_thread_id"] == 7
        assert body["text"] == "Endfield Redemption Codes\nCount: 1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_long_text_is_chunked(self):
        route = respx.post(TELEGRAM_URL).mock(return_value=httpx.Response(200, json={"ok": True}))
        notifier = TelegramNotifier("TOKEN", "42")

        assert await notifier.send("y" * 5000) is True

        assert route.call_count == 2
        first = json.loads(route.calls[0].request.content)
        assert len(first["text"]) == 4096
        assert "message_thread_id" not in first

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status(self):
        respx.post(TELEGRAM_URL).mock(return_value=httpx.Response(400, json={"ok": False}))

        assert await TelegramNotifier("TOKEN", "42").send("hi") is False

    @pytest.mark.asyncio
    async def test_empty_payload_is_a_no_op(self):
        assert await TelegramNotifier("TOKEN", "42").send({"embeds": []}) is True


class TestCompositeNotifier:
    """Tests for CompositeNotifier."""

    @pytest.mark.asyncio
    async def test_empty_composite_delivers(self):
        assert await CompositeNotifier([]).send("hi") is True

    @pytest.mark.asyncio
    async def test_all_delivered(self):
        a, b = _StubNotifier("a"), _StubNotifier("b")

        assert await CompositeNotifier([a, b]).send("hi") is True
        assert a.sent == ["hi"]
        assert b.sent == ["hi"]

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self):
        failing = _StubNotifier("failing", result=RuntimeError("down"))
        ok = _StubNotifier("ok")

        assert await CompositeNotifier([failing, ok]).send("hi") is False
        assert ok.sent == ["hi"]

    @pytest.mark.asyncio
    async def test_false_result_is_reported(self):
        composite = CompositeNotifier([_StubNotifier("a"), _StubNotifier("b", result=False)])

        assert await composite.send("hi") is False
