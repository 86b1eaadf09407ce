"""
Registry of tracked codes: merging, notifiability, pruning, listing.

The registry mutates the ``codes`` map of a ``CodeWatchState`` in place. It
owns no I/O; persistence is the store's job and the orchestrator decides
when to save.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from src.codes.normalize import is_trackable_code, normalize_code
from src.codes.schemas import (
    CodeCandidate,
    CodeSourceTier,
    CodeWatchState,
    TrackedCode,
    TrackedCodeSource,
)

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 10


@dataclass
class MergeResult:
    """Codes touched by one merge, and the subset created by it."""

    touched: list[TrackedCode] = field(default_factory=list)
    newly_discovered: list[TrackedCode] = field(default_factory=list)


def is_notifiable(code: TrackedCode) -> bool:
    """
    Confidence rule for pushing a code to users.

    Any official or curated sighting qualifies on its own; community-only
    codes need at least two distinct sources.
    """
    tiers = {source.source_tier for source in code.sources}
    if CodeSourceTier.OFFICIAL in tiers:
        return True
    if CodeSourceTier.CURATED in tiers:
        return True
    return len({source.source_id for source in code.sources}) >= 2


def sort_most_recent(codes: list[TrackedCode]) -> list[TrackedCode]:
    """Sort by last sighting, newest first, ties broken by code string."""
    by_code = sorted(codes, key=lambda code: code.code)
    return sorted(by_code, key=lambda code: code.last_seen_at, reverse=True)


def _merge_source(
    existing: TrackedCodeSource | None,
    candidate: CodeCandidate,
    now: datetime,
) -> TrackedCodeSource:
    if existing is None:
        return TrackedCodeSource(
            source_id=candidate.source_id,
            source_name=candidate.source_name,
            source_url=candidate.source_url,
            source_tier=candidate.source_tier,
            first_seen_at=now,
            last_seen_at=now,
            published_at=candidate.published_at,
            reference_url=candidate.reference_url,
        )

    existing.source_name = candidate.source_name
    existing.source_url = candidate.source_url
    existing.source_tier = candidate.source_tier
    existing.last_seen_at = max(existing.last_seen_at, now)
    if existing.published_at is None:
        existing.published_at = candidate.published_at
    if existing.reference_url is None:
        existing.reference_url = candidate.reference_url
    return existing


class CodeRegistry:
    """
    Deduplicated map of tracked codes backed by a ``CodeWatchState``.

    Usage:
        registry = CodeRegistry(state)
        result = registry.merge_candidates(candidates, now)
        notified = registry.promote_notifiable(result.touched, now)
    """

    def __init__(self, state: CodeWatchState) -> None:
        self._state = state

    @property
    def codes(self) -> dict[str, TrackedCode]:
        return self._state.codes

    def __len__(self) -> int:
        return len(self._state.codes)

    def get(self, code: str) -> TrackedCode | None:
        return self._state.codes.get(normalize_code(code))

    def merge_candidates(
        self,
        candidates: list[CodeCandidate],
        now: datetime,
    ) -> MergeResult:
        """
        Merge candidate sightings into the registry.

        Candidates that fail the trackable-code filter are dropped. A repeat
        sighting from the same source refreshes that source entry in place
        rather than appending a second one.

        Args:
            candidates: Candidates from one or more sources
            now: Timestamp of this sighting

        Returns:
            MergeResult with every touched code and the newly created ones
        """
        touched: dict[str, TrackedCode] = {}
        created: dict[str, TrackedCode] = {}

        for candidate in candidates:
            normalized = normalize_code(candidate.code)
            if not normalized or not is_trackable_code(normalized):
                continue

            tracked = self._state.codes.get(normalized)
            if tracked is None:
                tracked = TrackedCode(
                    code=normalized,
                    first_seen_at=now,
                    last_seen_at=now,
                )
                self._state.codes[normalized] = tracked
                created[normalized] = tracked

            existing = next(
                (s for s in tracked.sources if s.source_id == candidate.source_id),
                None,
            )
            merged = _merge_source(existing, candidate, now)
            if existing is None:
                tracked.sources.append(merged)

            tracked.last_seen_at = max(tracked.last_seen_at, now)
            touched[normalized] = tracked

        return MergeResult(
            touched=list(touched.values()),
            newly_discovered=list(created.values()),
        )

    def promote_notifiable(
        self,
        codes: list[TrackedCode],
        now: datetime,
    ) -> list[TrackedCode]:
        """
        Stamp codes that cross the notification threshold for the first time.

        Codes already notified are left untouched; a code is never notified
        twice.

        Returns:
            Codes stamped by this call
        """
        promoted: list[TrackedCode] = []
        for code in codes:
            if code.first_notified_at is not None:
                continue
            if not is_notifiable(code):
                continue
            code.first_notified_at = now
            code.last_notified_at = now
            promoted.append(code)
        return promoted

    def prune_invalid(self) -> int:
        """
        Delete stored codes that no longer pass the trackable-code filter.

        Returns:
            Number of codes removed
        """
        invalid = [
            key
            for key, tracked in self._state.codes.items()
            if not (is_trackable_code(key) and is_trackable_code(tracked.code))
        ]
        for key in invalid:
            del self._state.codes[key]

        if invalid:
            logger.warning("Removed %d invalid tracked codes from state", len(invalid))
        return len(invalid)

    def list_latest(
        self,
        limit: int = DEFAULT_LIST_LIMIT,
        notified_only: bool = False,
        source_id: str | None = None,
    ) -> list[TrackedCode]:
        """
        Most recently seen codes.

        Args:
            limit: Maximum number of codes (at least 1 is always allowed)
            notified_only: Only codes that were ever notified
            source_id: Only codes seen by this source

        Returns:
            Codes sorted by last sighting, newest first
        """
        source_id = source_id.strip() if source_id else None
        selected = [
            code
            for code in self._state.codes.values()
            if is_trackable_code(code.code)
            and (not notified_only or code.is_notified)
            and (not source_id or source_id in code.source_ids)
        ]
        return sort_most_recent(selected)[: max(1, limit)]
