"""Message formatting for code discovery and watch-run notifications.

Builders return Discord-compatible embed dicts. ``payload_to_text``
flattens any payload to plain text for channels without embed support.
"""

import re
from datetime import datetime, timezone
from typing import Any

from src.codes.schemas import CodeSourceTier, CodeWatchRunReason, CodeWatchRunSummary, TrackedCode

COLOR_SUCCESS = 0xF59F00
COLOR_INFO = 0x4C6EF5

WEBHOOK_USERNAME = "Perlica"
WEBHOOK_AVATAR_URL = (
    "https://play-lh.googleusercontent.com/l6FVNa293RykBWy88TqEhUakIcGSC8bRygSnKOBgztln48JX"
    "-WzMWnrBAETrKZsxDNC4HhwCsvfle_UI7rBE=s256-rw"
)

EMBED_FIELD_MAX_CHARS = 1024
REDEEM_HINT = "Redeem in-game only."

_REASON_LABELS = {
    CodeWatchRunReason.STARTUP: "Startup scan",
    CodeWatchRunReason.SCHEDULED: "Scheduled scan",
    CodeWatchRunReason.MANUAL: "Manual scan",
}

_SOURCE_SUFFIX_RE = re.compile(r"\s+Endfield\s+Codes$", re.IGNORECASE)
_DISCORD_TIMESTAMP_RE = re.compile(r"<t:(\d+)(?::[tTdDfFR])?>")


def format_reason(reason: CodeWatchRunReason) -> str:
    return _REASON_LABELS.get(CodeWatchRunReason(reason), "Scan")


def discord_time(value: datetime | None) -> str:
    """Render a datetime as a Discord timestamp tag."""
    if value is None:
        return "Unknown"
    return f"<t:{int(value.timestamp())}:f>"


def code_confidence(code: TrackedCode) -> str:
    """Human label for how much a code can be trusted."""
    tiers = {source.source_tier for source in code.sources}
    if CodeSourceTier.OFFICIAL in tiers:
        return "Official source"
    if CodeSourceTier.CURATED in tiers:
        return "Curated source"
    if len(code.sources) >= 2:
        return "Cross-source confirmation"
    return "Community-only (unverified)"


def format_source_name(name: str) -> str:
    return _SOURCE_SUFFIX_RE.sub("", name).strip()


def _unique_source_names(codes: list[TrackedCode]) -> list[str]:
    names: list[str] = []
    for code in codes:
        for source in code.sources:
            name = format_source_name(source.source_name)
            if name and name not in names:
                names.append(name)
    return names


def build_code_list_value(codes: list[TrackedCode], max_chars: int = EMBED_FIELD_MAX_CHARS) -> str:
    """One line per code, truncated to fit an embed field with a ``+N more`` tail."""
    lines = [f"`{code.code}` - {code_confidence(code)}" for code in codes]
    joined = "\n".join(lines)
    if len(joined) <= max_chars:
        return joined

    selected: list[str] = []
    length = 0
    for line in lines:
        extra = len(line) if not selected else len(line) + 1
        # Leave room for the "+N more" line
        if length + extra > max_chars - 32:
            break
        selected.append(line)
        length += extra

    remaining = len(lines) - len(selected)
    if remaining > 0:
        selected.append(f"+{remaining} more")
    return "\n".join(selected)


def build_discovery_payload(
    codes: list[TrackedCode],
    reason: CodeWatchRunReason,
    timestamp: datetime,
) -> dict[str, Any]:
    """Default discovery payload: a single embed listing every notified code."""
    sources = ", ".join(_unique_source_names(codes))[:EMBED_FIELD_MAX_CHARS] or "Unknown"
    embed = {
        "title": "Endfield Redemption Codes",
        "author": {"name": WEBHOOK_USERNAME, "icon_url": WEBHOOK_AVATAR_URL},
        "color": COLOR_SUCCESS,
        "fields": [
            {"name": "New Codes", "value": build_code_list_value(codes), "inline": False},
            {"name": "Count", "value": str(len(codes)), "inline": True},
            {"name": "Scan", "value": format_reason(reason), "inline": True},
            {"name": "Checked At", "value": discord_time(timestamp), "inline": True},
            {"name": "Sources", "value": sources, "inline": False},
            {"name": "Redeem", "value": REDEEM_HINT, "inline": False},
        ],
        "footer": {"text": "Code watch discovery"},
        "timestamp": timestamp.isoformat(),
    }
    return {"embeds": [embed]}


def build_run_summary_embed(
    summary: CodeWatchRunSummary,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Operator-facing embed describing one watch run."""
    timestamp = timestamp or summary.finished_at
    if summary.skipped_sources:
        skipped = "\n".join(
            f"{item.source_id}: {item.reason}" for item in summary.skipped_sources
        )[:EMBED_FIELD_MAX_CHARS]
    else:
        skipped = "None"
    checked = ", ".join(summary.checked_sources) or "None"

    return {
        "title": "Endfield Code Watch",
        "author": {"name": WEBHOOK_USERNAME, "icon_url": WEBHOOK_AVATAR_URL},
        "color": COLOR_SUCCESS if summary.notified_codes else COLOR_INFO,
        "fields": [
            {"name": "Mode", "value": summary.mode.value, "inline": True},
            {"name": "Reason", "value": format_reason(summary.reason), "inline": True},
            {"name": "Checked Sources", "value": checked, "inline": False},
            {"name": "Skipped Sources", "value": skipped, "inline": False},
            {"name": "New Codes", "value": str(len(summary.new_codes)), "inline": True},
            {"name": "Notified Codes", "value": str(len(summary.notified_codes)), "inline": True},
            {"name": "Total Known", "value": str(summary.total_known), "inline": True},
        ],
        "footer": {"text": "Code watch run result"},
        "timestamp": timestamp.isoformat(),
    }


def _replace_discord_timestamps(text: str) -> str:
    def _render(match: re.Match[str]) -> str:
        moment = datetime.fromtimestamp(int(match.group(1)), tz=timezone.utc)
        return moment.strftime("%Y-%m-%d %H:%M UTC")

    return _DISCORD_TIMESTAMP_RE.sub(_render, text)


def _embed_to_text(embed: dict[str, Any]) -> list[str]:
    lines: list[str] = []
    title = str(embed.get("title") or "").strip()
    if title:
        lines.append(title)
    description = str(embed.get("description") or "").strip()
    if description:
        lines.append(description)
    for field in embed.get("fields") or []:
        name = str(field.get("name") or "").strip()
        value = str(field.get("value") or "").strip()
        if not value:
            continue
        if "\n" in value:
            lines.append(f"{name}:" if name else "")
            lines.append(value)
        else:
            lines.append(f"{name}: {value}" if name else value)
    url = str(embed.get("url") or "").strip()
    if url:
        lines.append(url)
    return lines


def payload_to_text(payload: str | dict[str, Any]) -> str:
    """Flatten a string or ``{"content", "embeds"}`` payload to plain text."""
    if isinstance(payload, str):
        return _replace_discord_timestamps(payload).strip()

    blocks: list[str] = []
    content = str(payload.get("content") or "").strip()
    if content:
        blocks.append(content)
    for embed in payload.get("embeds") or []:
        if isinstance(embed, dict):
            lines = _embed_to_text(embed)
            if lines:
                blocks.append("\n".join(lines))
    return _replace_discord_timestamps("\n\n".join(blocks)).strip()
