"""Code watch configuration.

Controls whether the watcher scans, which sources it scans, and the
politeness limits applied to them. All settings can be overridden via
``CODE_WATCH_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.codes.schemas import CodeWatchMode

DEFAULT_SOURCE_IDS = ("game8", "destructoid", "pocket_tactics")


class CodeWatchConfig(BaseSettings):
    """Configuration for the code-watch engine."""

    model_config = SettingsConfigDict(
        env_prefix="CODE_WATCH_",
        case_sensitive=False,
        extra="ignore",
    )

    enabled: bool = Field(
        default=False,
        description="Master switch; a disabled watcher skips every cycle",
    )
    mode: CodeWatchMode = Field(
        default=CodeWatchMode.ACTIVE,
        description="active scans sources, passive only serves stored codes",
    )

    # Scheduling
    interval_minutes: int = Field(
        default=45,
        ge=1,
        description="Minutes between scheduled cycles in the watch loop",
    )
    startup_scan: bool = Field(
        default=True,
        description="Run one cycle immediately when the watch loop starts",
    )

    sources: str = Field(
        default=",".join(DEFAULT_SOURCE_IDS),
        description="Comma-separated source ids, scanned in this order",
    )

    # Politeness
    http_timeout_ms: int = Field(
        default=10_000,
        ge=1000,
        description="Hard deadline for a single source fetch",
    )
    lease_seconds: int = Field(
        default=120,
        ge=30,
        description="Cross-process lease TTL; must exceed a full cycle",
    )
    max_requests_per_hour: int = Field(
        default=12,
        ge=1,
        description="Service-wide cap on requests per source per rolling hour",
    )

    @property
    def source_ids(self) -> list[str]:
        """Configured source ids, trimmed and de-duplicated in order."""
        ids: list[str] = []
        for value in self.sources.split(","):
            value = value.strip()
            if value and value not in ids:
                ids.append(value)
        return ids or list(DEFAULT_SOURCE_IDS)
