"""Notification delivery for discovered codes (Discord, Telegram)."""

from src.notifications.channels import (
    CompositeNotifier,
    DiscordWebhookNotifier,
    NotificationPayload,
    Notifier,
    TelegramNotifier,
)
from src.notifications.formatting import (
    build_discovery_payload,
    build_run_summary_embed,
    code_confidence,
    payload_to_text,
)

__all__ = [
    "CompositeNotifier",
    "DiscordWebhookNotifier",
    "NotificationPayload",
    "Notifier",
    "TelegramNotifier",
    "build_discovery_payload",
    "build_run_summary_embed",
    "code_confidence",
    "payload_to_text",
]
