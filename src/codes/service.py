"""Code watch orchestrator: one ``run()`` call drives one watch cycle.

Cycle outline:
1. Skip everything when disabled, passive, or already running in this process.
2. Take the cross-process lease; skip everything if another instance holds it.
3. Check each source in declaration order, honoring backoff, minimum
   interval and hourly budget, merging the candidates it returns.
4. Stamp codes that became notifiable, persist if anything changed.
5. Release the lease, then push one discovery notification (non-manual runs).

Source failures are recorded with exponential backoff and never abort the
cycle. Notification failures are logged and swallowed; persistence failures
propagate.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from src.codes.config import CodeWatchConfig
from src.codes.registry import DEFAULT_LIST_LIMIT, CodeRegistry, sort_most_recent
from src.codes.scheduling import get_skip_reason, record_failure, record_request, record_success
from src.codes.schemas import (
    CodeSourceState,
    CodeWatchMode,
    CodeWatchRunReason,
    CodeWatchRunSummary,
    CodeWatchState,
    SkippedSource,
    SourceFetchContext,
    TrackedCode,
    utc_now,
)
from src.codes.store import CodeStore, default_lease_holder
from src.observability.metrics import get_metrics

if TYPE_CHECKING:
    from src.ingestion.base_adapter import CodeSourceAdapter
    from src.notifications.channels import NotificationPayload, Notifier

logger = structlog.get_logger(__name__)

MIN_LEASE = timedelta(seconds=30)

SKIP_ALL = "all"
SKIP_DISABLED = "disabled"
SKIP_PASSIVE = "passive mode"
SKIP_IN_PROGRESS = "run in progress"
SKIP_LEASE_HELD = "lease held by another active instance"

DiscoveryPayloadBuilder = Callable[
    [list[TrackedCode], CodeWatchRunReason, datetime], "NotificationPayload"
]


class CodeWatchService:
    """
    Polite, lease-guarded watcher over a fixed list of code sources.

    A second ``run()`` on the same instance while one is in flight returns an
    all-skipped summary immediately instead of waiting.

    Usage:
        service = CodeWatchService(config, store, sources, notifier=notifier,
                                   build_discovery_payload=build_discovery_payload)
        summary = await service.run(CodeWatchRunReason.SCHEDULED)
    """

    def __init__(
        self,
        config: CodeWatchConfig,
        store: CodeStore,
        sources: list["CodeSourceAdapter"],
        state: CodeWatchState | None = None,
        notifier: "Notifier | None" = None,
        build_discovery_payload: DiscoveryPayloadBuilder | None = None,
        lease_holder: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        metrics: Any | None = None,
    ) -> None:
        self._enabled = config.enabled and bool(sources)
        self._mode = config.mode
        self._timeout_ms = config.http_timeout_ms
        self._lease_ttl = max(MIN_LEASE, timedelta(seconds=config.lease_seconds))
        self._max_requests_per_hour = max(1, config.max_requests_per_hour)
        self._sources = list(sources)
        self._store = store
        self._state = state if state is not None else store.load()
        self._registry = CodeRegistry(self._state)
        self._notifier = notifier
        self._build_discovery_payload = build_discovery_payload
        self._lease_holder = lease_holder or default_lease_holder()
        self._clock = clock
        self._metrics = metrics or get_metrics()
        self._run_lock = asyncio.Lock()

        # Pruned codes must reach disk even if no source is fetched next cycle
        self._pending_save = self._registry.prune_invalid() > 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def mode(self) -> CodeWatchMode:
        return self._mode

    @property
    def sources(self) -> list["CodeSourceAdapter"]:
        return list(self._sources)

    @property
    def state(self) -> CodeWatchState:
        return self._state

    @property
    def registry(self) -> CodeRegistry:
        return self._registry

    @property
    def in_flight(self) -> bool:
        return self._run_lock.locked()

    @property
    def pending_save(self) -> bool:
        return self._pending_save

    def list_latest(
        self,
        limit: int = DEFAULT_LIST_LIMIT,
        notified_only: bool = False,
        source_id: str | None = None,
    ) -> list[TrackedCode]:
        """Most recently seen codes; see ``CodeRegistry.list_latest``."""
        return self._registry.list_latest(limit, notified_only, source_id)

    def _skipped_summary(
        self,
        reason: CodeWatchRunReason,
        started_at: datetime,
        skip_reason: str,
    ) -> CodeWatchRunSummary:
        return CodeWatchRunSummary(
            mode=self._mode,
            reason=reason,
            started_at=started_at,
            finished_at=self._clock(),
            skipped_sources=[SkippedSource(source_id=SKIP_ALL, reason=skip_reason)],
            total_known=len(self._registry),
        )

    async def run(self, reason: CodeWatchRunReason | str) -> CodeWatchRunSummary:
        """
        Run one watch cycle.

        Args:
            reason: startup, scheduled or manual; manual runs never notify

        Returns:
            Summary of checked and skipped sources, new and notified codes

        Raises:
            OSError: If the state cannot be persisted
        """
        reason = CodeWatchRunReason(reason)
        started_at = self._clock()

        if not self._enabled:
            return self._skipped_summary(reason, started_at, SKIP_DISABLED)
        if self._mode != CodeWatchMode.ACTIVE:
            return self._skipped_summary(reason, started_at, SKIP_PASSIVE)
        if self._run_lock.locked():
            return self._skipped_summary(reason, started_at, SKIP_IN_PROGRESS)

        async with self._run_lock:
            if not self._store.acquire_lease(self._lease_holder, self._lease_ttl, now=started_at):
                logger.info("Code watch cycle skipped, lease held elsewhere", reason=reason.value)
                return self._skipped_summary(reason, started_at, SKIP_LEASE_HELD)

            try:
                summary = await self._run_cycle(reason, started_at)
            finally:
                self._store.release_lease(self._lease_holder)

        await self._send_notifications(summary, reason, started_at)

        logger.info(
            "Code watch run completed",
            reason=reason.value,
            checked_sources=len(summary.checked_sources),
            skipped_sources=len(summary.skipped_sources),
            new_codes=len(summary.new_codes),
            notified_codes=len(summary.notified_codes),
            total_known=summary.total_known,
        )
        return summary

    async def _run_cycle(
        self,
        reason: CodeWatchRunReason,
        started_at: datetime,
    ) -> CodeWatchRunSummary:
        summary = CodeWatchRunSummary(
            mode=self._mode,
            reason=reason,
            started_at=started_at,
            finished_at=started_at,
        )
        changed = False
        touched: dict[str, TrackedCode] = {}
        created: dict[str, TrackedCode] = {}

        for source in self._sources:
            now = self._clock()
            state = self._ensure_source_state(source.id)

            skip_reason = get_skip_reason(
                state,
                now,
                min_interval=timedelta(milliseconds=source.min_interval_ms),
                hourly_budget=min(source.max_requests_per_hour, self._max_requests_per_hour),
            )
            if skip_reason:
                summary.skipped_sources.append(
                    SkippedSource(source_id=source.id, reason=skip_reason)
                )
                self._metrics.record_skip(source.id, skip_reason)
                continue

            record_request(state, now)
            state.last_checked_at = now
            changed = True
            summary.checked_sources.append(source.id)

            fetch_started = time.monotonic()
            try:
                result = await source.fetch(
                    SourceFetchContext(state=state, timeout_ms=self._timeout_ms)
                )
            except Exception as e:
                message = str(e) or type(e).__name__
                backoff = record_failure(state, self._clock(), message)
                logger.warning(
                    "Code source fetch failed",
                    source_id=source.id,
                    error=message,
                    failure_count=state.failure_count,
                    backoff_seconds=int(backoff.total_seconds()),
                )
                skipped = SkippedSource(source_id=source.id, reason=f"error: {message}")
                summary.skipped_sources.append(skipped)
                self._metrics.record_check(
                    source.id, "error", latency=time.monotonic() - fetch_started
                )
                self._metrics.record_skip(source.id, skipped.reason)
                continue

            record_success(state, now, result.http_status)
            if result.etag:
                state.last_etag = result.etag
            if result.last_modified:
                state.last_modified = result.last_modified
            if result.content_hash:
                state.last_content_hash = result.content_hash

            outcome = "not_modified" if result.not_modified else "changed"
            self._metrics.record_check(
                source.id, outcome, latency=time.monotonic() - fetch_started
            )

            if result.not_modified or not result.candidates:
                continue

            merged = self._registry.merge_candidates(result.candidates, now)
            for code in merged.touched:
                touched[code.code] = code
            for code in merged.newly_discovered:
                created[code.code] = code

        notified = self._registry.promote_notifiable(list(touched.values()), self._clock())
        if notified:
            changed = True
        summary.notified_codes = notified
        summary.new_codes = sort_most_recent(list(created.values()))

        if changed or self._pending_save:
            self._store.save(self._state)
            self._pending_save = False

        summary.total_known = len(self._registry)
        summary.finished_at = self._clock()
        self._metrics.record_cycle(
            discovered=len(summary.new_codes),
            notified=len(summary.notified_codes),
            known=summary.total_known,
        )
        return summary

    def _ensure_source_state(self, source_id: str) -> CodeSourceState:
        state = self._state.source_state.get(source_id)
        if state is None:
            state = CodeSourceState()
            self._state.source_state[source_id] = state
        return state

    async def _send_notifications(
        self,
        summary: CodeWatchRunSummary,
        reason: CodeWatchRunReason,
        timestamp: datetime,
    ) -> None:
        """Push newly notifiable codes. Delivery failures are logged, never raised."""
        if reason == CodeWatchRunReason.MANUAL:
            return
        if self._notifier is None or self._build_discovery_payload is None:
            return
        if not summary.notified_codes:
            return

        codes = [code.code for code in summary.notified_codes]
        try:
            payload = self._build_discovery_payload(summary.notified_codes, reason, timestamp)
            delivered = await self._notifier.send(payload)
        except Exception as e:
            logger.warning("Code notification failed", codes=codes, error=str(e))
            return

        if delivered is False:
            logger.warning("Code notification not delivered", codes=codes)
