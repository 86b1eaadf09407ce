"""Notification channel implementations for code discovery delivery.

Provides an ABC for notifiers plus concrete implementations for Discord
webhooks and the Telegram Bot API. ``CompositeNotifier`` fans one payload
out to several channels.

A payload is either a plain string or a Discord-style message dict
(``{"content"?: str, "embeds"?: list}``). Embeds are passed through as
opaque data; channels that cannot render embeds flatten them to text.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlsplit

import httpx

from src.notifications.formatting import WEBHOOK_AVATAR_URL, WEBHOOK_USERNAME, payload_to_text

logger = logging.getLogger(__name__)

NotificationPayload = str | dict[str, Any]

TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_MAX_MESSAGE_CHARS = 4096


class Notifier(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'discord', 'telegram')."""

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> bool:
        """Deliver a payload through this channel.

        Args:
            payload: String or message dict to deliver.

        Returns:
            True if delivery succeeded, False otherwise.
        """


def redact_webhook_url(url: str) -> str:
    """Hide the token part of a Discord webhook URL for logging."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "[invalid-url]"
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) >= 3 and segments[0] == "api" and segments[1] == "webhooks":
        return f"{parts.scheme}://{parts.netloc}/api/webhooks/{segments[2]}/***"
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


class DiscordWebhookNotifier(Notifier):
    """Delivers payloads to a Discord channel via incoming webhook.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "discord"

    def _build_body(self, payload: NotificationPayload) -> dict[str, Any]:
        body: dict[str, Any] = {"content": payload} if isinstance(payload, str) else dict(payload)
        body["username"] = WEBHOOK_USERNAME
        body["avatar_url"] = WEBHOOK_AVATAR_URL
        return body

    async def send(self, payload: NotificationPayload) -> bool:
        body = self._build_body(payload)
        safe_url = redact_webhook_url(self._webhook_url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._webhook_url, json=body)
            if resp.is_success:
                return True
            logger.warning("Discord webhook %s returned %d", safe_url, resp.status_code)
            return False
        except httpx.TimeoutException:
            logger.warning("Discord webhook %s timed out", safe_url)
            return False
        except httpx.HTTPError as e:
            logger.warning("Discord webhook %s failed: %s", safe_url, e)
            return False


def split_message(text: str, limit: int = TELEGRAM_MAX_MESSAGE_CHARS) -> list[str]:
    """Split text into chunks of at most ``limit`` chars, preferring line breaks."""
    chunks: list[str] = []
    remaining = text.strip()
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut].rstrip())
        remaining = remaining[cut:].lstrip("\n")
    if remaining:
        chunks.append(remaining)
    return chunks


class TelegramNotifier(Notifier):
    """Delivers payloads as plain-text messages through the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        thread_id: int | None = None,
        timeout: float = 10.0,
        api_base: str = TELEGRAM_API_BASE,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._thread_id = thread_id
        self._timeout = timeout
        self._api_base = api_base.rstrip("/")

    @property
    def name(self) -> str:
        return "telegram"

    @property
    def _send_url(self) -> str:
        return f"{self._api_base}/bot{self._bot_token}/sendMessage"

    async def send(self, payload: NotificationPayload) -> bool:
        chunks = split_message(payload_to_text(payload))
        if not chunks:
            return True

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                for chunk in chunks:
                    body: dict[str, Any] = {
                        "chat_id": self._chat_id,
                        "text": chunk,
                        "disable_web_page_preview": True,
                    }
                    if self._thread_id is not None:
                        body["message_thread_id"] = self._thread_id
                    resp = await client.post(self._send_url, json=body)
                    if not resp.is_success:
                        logger.warning(
                            "Telegram sendMessage returned %d for chat %s",
                            resp.status_code, self._chat_id,
                        )
                        return False
            return True
        except httpx.TimeoutException:
            logger.warning("Telegram sendMessage timed out for chat %s", self._chat_id)
            return False
        except httpx.HTTPError as e:
            logger.warning("Telegram sendMessage failed for chat %s: %s", self._chat_id, type(e).__name__)
            return False


class CompositeNotifier(Notifier):
    """Sends one payload to every wrapped notifier concurrently.

    A failing channel never prevents delivery through the others.
    """

    def __init__(self, notifiers: list[Notifier]) -> None:
        self._notifiers = list(notifiers)

    @property
    def name(self) -> str:
        return "composite"

    @property
    def notifiers(self) -> list[Notifier]:
        return list(self._notifiers)

    async def send(self, payload: NotificationPayload) -> bool:
        if not self._notifiers:
            return True

        results = await asyncio.gather(
            *(notifier.send(payload) for notifier in self._notifiers),
            return_exceptions=True,
        )

        delivered = True
        for notifier, result in zip(self._notifiers, results):
            if isinstance(result, BaseException):
                logger.warning("Notifier %s delivery failed: %s", notifier.name, result)
                delivered = False
            elif result is False:
                delivered = False
        return delivered
