"""
Data models for the code-watch engine.

These models double as the schema of the persisted state file. Python
attributes are snake_case; the JSON keys stay camelCase (``sourceState``,
``firstSeenAt``, ``lastEtag``) so state files written by earlier versions
of the watcher keep loading. Always dump with ``by_alias=True``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

STATE_VERSION = 1


def utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CodeSourceTier(str, Enum):
    """Trust classification of a source, highest first."""

    OFFICIAL = "official"
    CURATED = "curated"
    COMMUNITY = "community"


class CodeWatchMode(str, Enum):
    """Active watchers scan; passive watchers only serve what is stored."""

    ACTIVE = "active"
    PASSIVE = "passive"


class CodeWatchRunReason(str, Enum):
    """What triggered a watch cycle."""

    STARTUP = "startup"
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class _CamelModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class CodeCandidate(_CamelModel):
    """A code string extracted from one source fetch, not yet deduplicated."""

    code: str = Field(..., min_length=1)
    source_id: str = Field(..., min_length=1)
    source_name: str = Field(..., min_length=1)
    source_url: str = Field(..., min_length=1)
    source_tier: CodeSourceTier
    published_at: UtcDatetime | None = None
    reference_url: str | None = None
    context: str | None = None


class TrackedCodeSource(_CamelModel):
    """Per-source sighting metadata, owned by its parent TrackedCode."""

    source_id: str = Field(..., min_length=1)
    source_name: str = Field(..., min_length=1)
    source_url: str = Field(..., min_length=1)
    source_tier: CodeSourceTier
    first_seen_at: UtcDatetime
    last_seen_at: UtcDatetime
    published_at: UtcDatetime | None = None
    reference_url: str | None = None


class TrackedCode(_CamelModel):
    """
    A deduplicated code observed by one or more sources.

    ``first_notified_at`` is stamped once, the first cycle the code becomes
    notifiable, and never changes afterwards.
    """

    code: str = Field(..., min_length=1)
    first_seen_at: UtcDatetime
    last_seen_at: UtcDatetime
    sources: list[TrackedCodeSource] = Field(default_factory=list)
    first_notified_at: UtcDatetime | None = None
    last_notified_at: UtcDatetime | None = None

    @property
    def is_notified(self) -> bool:
        return self.first_notified_at is not None

    @property
    def source_ids(self) -> list[str]:
        return [source.source_id for source in self.sources]


class CodeSourceState(_CamelModel):
    """Per-source scraper bookkeeping: validators, failures, request window."""

    last_checked_at: UtcDatetime | None = None
    last_success_at: UtcDatetime | None = None
    last_etag: str | None = None
    last_modified: str | None = None
    last_content_hash: str | None = None
    last_status: int | None = None
    last_error: str | None = None
    failure_count: int = Field(default=0, ge=0)
    backoff_until: UtcDatetime | None = None
    window_started_at: UtcDatetime | None = None
    window_request_count: int = Field(default=0, ge=0)


class CodeWatchState(_CamelModel):
    """Top-level persisted aggregate."""

    version: int = STATE_VERSION
    source_state: dict[str, CodeSourceState] = Field(default_factory=dict)
    codes: dict[str, TrackedCode] = Field(default_factory=dict)


class Lease(_CamelModel):
    """Contents of the advisory lock file."""

    holder: str = Field(..., min_length=1)
    acquired_at: UtcDatetime
    expires_at: UtcDatetime


class SkippedSource(_CamelModel):
    """A source that was not checked this cycle, and why."""

    source_id: str
    reason: str


class CodeWatchRunSummary(_CamelModel):
    """Result of one ``CodeWatchService.run()`` call."""

    mode: CodeWatchMode
    reason: CodeWatchRunReason
    started_at: UtcDatetime
    finished_at: UtcDatetime
    checked_sources: list[str] = Field(default_factory=list)
    skipped_sources: list[SkippedSource] = Field(default_factory=list)
    new_codes: list[TrackedCode] = Field(default_factory=list)
    notified_codes: list[TrackedCode] = Field(default_factory=list)
    total_known: int = 0


@dataclass
class SourceFetchContext:
    """Inputs handed to an adapter for one fetch."""

    state: CodeSourceState
    timeout_ms: int


@dataclass
class SourceFetchResult:
    """What an adapter reports back after one fetch."""

    fetched_url: str | None = None
    http_status: int | None = None
    not_modified: bool = False
    etag: str | None = None
    last_modified: str | None = None
    content_hash: str | None = None
    candidates: list[CodeCandidate] = field(default_factory=list)
