"""
Code watch service wiring and the long-running watch loop.

Builds a ``CodeWatchService`` from settings (store location, enabled
sources, notification channels) and drives it on a fixed interval:
one startup scan, then one scheduled scan every ``interval_minutes``.

Features:
- Notifier fan-out from whichever channels are configured
- Graceful shutdown
- Cycle errors are logged and the loop keeps going
"""

import asyncio

import structlog

from src.codes.config import CodeWatchConfig
from src.codes.schemas import CodeWatchRunReason, CodeWatchRunSummary
from src.codes.service import CodeWatchService
from src.codes.store import CodeStore
from src.config.settings import Settings, get_settings
from src.ingestion.registry import resolve_code_sources
from src.notifications.channels import (
    CompositeNotifier,
    DiscordWebhookNotifier,
    Notifier,
    TelegramNotifier,
)
from src.notifications.formatting import build_discovery_payload
from src.observability.logging import bind_context, clear_context

logger = structlog.get_logger(__name__)


def create_notifier(settings: Settings) -> Notifier | None:
    """Build a notifier from the configured channels, or None if none are set."""
    notifiers: list[Notifier] = []

    if settings.discord_configured:
        notifiers.append(
            DiscordWebhookNotifier(
                settings.discord_webhook_url,
                timeout=settings.notify_timeout_seconds,
            )
        )
        logger.info("Discord notifications enabled")

    if settings.telegram_configured:
        notifiers.append(
            TelegramNotifier(
                settings.telegram_bot_token,
                settings.telegram_chat_id,
                thread_id=settings.telegram_thread_id,
                timeout=settings.notify_timeout_seconds,
            )
        )
        logger.info("Telegram notifications enabled")

    if not notifiers:
        return None
    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)


def create_code_watch_service(
    config: CodeWatchConfig | None = None,
    settings: Settings | None = None,
    notifier: Notifier | None = None,
) -> CodeWatchService:
    """
    Assemble a code watch service from configuration.

    Args:
        config: Code watch config (or load from CODE_WATCH_* env)
        settings: Application settings (or the cached global settings)
        notifier: Notification channel (or build from settings)

    Returns:
        Ready-to-run service; disabled when no configured source is known
    """
    config = config or CodeWatchConfig()
    settings = settings or get_settings()

    sources, unknown = resolve_code_sources(config.source_ids)
    if unknown:
        logger.warning("Ignoring unknown code sources", source_ids=unknown)

    if notifier is None:
        notifier = create_notifier(settings)

    service = CodeWatchService(
        config,
        CodeStore(settings.data_path),
        sources,
        notifier=notifier,
        build_discovery_payload=build_discovery_payload,
    )

    logger.info(
        "Code watch service initialized",
        enabled=service.enabled,
        mode=service.mode.value,
        sources=[source.id for source in sources],
        known_codes=len(service.registry),
        notifier=notifier.name if notifier else None,
    )
    return service


class CodeWatchRunner:
    """
    Runs a code watch service on a fixed interval.

    Usage:
        runner = CodeWatchRunner(service, interval_minutes=45)
        await runner.start()  # Runs until stop() is called
    """

    def __init__(
        self,
        service: CodeWatchService,
        interval_minutes: float = 45,
        startup_scan: bool = True,
    ) -> None:
        self._service = service
        self._interval_seconds = interval_minutes * 60
        self._startup_scan = startup_scan
        self._running = False
        self._stop_event = asyncio.Event()
        self._cycles = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cycles(self) -> int:
        """Number of cycles attempted since start."""
        return self._cycles

    async def start(self) -> None:
        """
        Start the watch loop.

        Runs until stop() is called. Returns immediately when the service
        is disabled.
        """
        if not self._service.enabled:
            logger.info("Code watch disabled, not starting loop")
            return

        self._running = True
        self._stop_event.clear()
        logger.info(
            "Starting code watch loop",
            interval_seconds=self._interval_seconds,
            startup_scan=self._startup_scan,
        )

        try:
            if self._startup_scan:
                await self._run_safely(CodeWatchRunReason.STARTUP)

            while self._running:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval_seconds)
                except TimeoutError:
                    pass
                if not self._running:
                    break
                await self._run_safely(CodeWatchRunReason.SCHEDULED)
        except asyncio.CancelledError:
            logger.info("Code watch loop cancelled")
        finally:
            self._running = False
            logger.info("Code watch loop stopped", cycles=self._cycles)

    async def stop(self) -> None:
        """Stop the watch loop after the current cycle finishes."""
        logger.info("Stopping code watch loop")
        self._running = False
        self._stop_event.set()

    async def run_once(
        self,
        reason: CodeWatchRunReason = CodeWatchRunReason.MANUAL,
    ) -> CodeWatchRunSummary:
        """Run a single cycle outside the loop. Errors propagate."""
        return await self._service.run(reason)

    async def _run_safely(self, reason: CodeWatchRunReason) -> CodeWatchRunSummary | None:
        self._cycles += 1
        bind_context(cycle=self._cycles, reason=reason.value)
        try:
            return await self._service.run(reason)
        except Exception as e:
            logger.error("Code watch cycle failed", error=str(e), exc_info=True)
            return None
        finally:
            clear_context()
