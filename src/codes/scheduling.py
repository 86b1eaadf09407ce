"""
Per-source politeness rules: failure backoff, minimum interval, hourly budget.

All functions are pure over a ``CodeSourceState`` and an explicit ``now`` so
the orchestrator stays deterministic and testable.

Backoff formula (minutes): min(60, 5 * 2^min(failure_count - 1, 6))
    1 failure -> 5, 2 -> 10, 3 -> 20, 4 -> 40, 5+ -> 60
"""

from datetime import datetime, timedelta

from src.codes.schemas import CodeSourceState

HOUR = timedelta(hours=1)
BASE_BACKOFF = timedelta(minutes=5)
MAX_BACKOFF = timedelta(hours=1)
MAX_BACKOFF_EXPONENT = 6

SKIP_BACKOFF = "backoff active"
SKIP_MIN_INTERVAL = "min interval not reached"
SKIP_BUDGET = "hourly request budget reached"


def compute_backoff(failure_count: int) -> timedelta:
    """
    Cooldown imposed after ``failure_count`` consecutive failures.

    Args:
        failure_count: Consecutive failures including the current one

    Returns:
        Backoff duration, capped at one hour
    """
    exponent = min(max(failure_count - 1, 0), MAX_BACKOFF_EXPONENT)
    return min(MAX_BACKOFF, BASE_BACKOFF * (2**exponent))


def _window_expired(state: CodeSourceState, now: datetime) -> bool:
    return state.window_started_at is None or now - state.window_started_at >= HOUR


def get_skip_reason(
    state: CodeSourceState,
    now: datetime,
    min_interval: timedelta,
    hourly_budget: int,
) -> str | None:
    """
    Decide whether a source must be skipped this cycle.

    Checks run in order and the first hit wins: backoff, then minimum
    interval, then hourly budget.

    Args:
        state: Bookkeeping for the source
        now: Current time (aware UTC)
        min_interval: Minimum gap between two checks of this source
        hourly_budget: Requests allowed in one rolling hour window

    Returns:
        Human-readable skip reason, or None if the source may be checked
    """
    if state.backoff_until is not None and state.backoff_until > now:
        return SKIP_BACKOFF

    if state.last_checked_at is not None and now - state.last_checked_at < min_interval:
        return SKIP_MIN_INTERVAL

    if _window_expired(state, now):
        return None

    if state.window_request_count >= hourly_budget:
        return SKIP_BUDGET

    return None


def record_request(state: CodeSourceState, now: datetime) -> None:
    """Count one request against the rolling hour window, opening a new one if needed."""
    if _window_expired(state, now):
        state.window_started_at = now
        state.window_request_count = 1
        return

    state.window_request_count += 1


def record_success(state: CodeSourceState, now: datetime, http_status: int | None) -> None:
    """Clear failure bookkeeping after a successful fetch."""
    state.last_status = http_status
    state.last_error = None
    state.failure_count = 0
    state.backoff_until = None
    state.last_success_at = now


def record_failure(state: CodeSourceState, now: datetime, message: str) -> timedelta:
    """
    Register a failed fetch and start its backoff window.

    Returns:
        The backoff applied
    """
    state.failure_count += 1
    backoff = compute_backoff(state.failure_count)
    state.last_error = message
    state.backoff_until = now + backoff
    return backoff
