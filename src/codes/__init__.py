"""Code watch: registry, persistence, and the watch-cycle orchestrator."""

from src.codes.config import CodeWatchConfig
from src.codes.normalize import is_trackable_code, looks_like_code, normalize_code
from src.codes.registry import CodeRegistry, MergeResult, is_notifiable
from src.codes.schemas import (
    CodeCandidate,
    CodeSourceState,
    CodeSourceTier,
    CodeWatchMode,
    CodeWatchRunReason,
    CodeWatchRunSummary,
    CodeWatchState,
    Lease,
    SkippedSource,
    SourceFetchContext,
    SourceFetchResult,
    TrackedCode,
    TrackedCodeSource,
)
from src.codes.service import CodeWatchService
from src.codes.store import CodeStore

__all__ = [
    "CodeCandidate",
    "CodeRegistry",
    "CodeSourceState",
    "CodeSourceTier",
    "CodeStore",
    "CodeWatchConfig",
    "CodeWatchMode",
    "CodeWatchRunReason",
    "CodeWatchRunSummary",
    "CodeWatchService",
    "CodeWatchState",
    "Lease",
    "MergeResult",
    "SkippedSource",
    "SourceFetchContext",
    "SourceFetchResult",
    "TrackedCode",
    "TrackedCodeSource",
    "is_notifiable",
    "is_trackable_code",
    "looks_like_code",
    "normalize_code",
]
