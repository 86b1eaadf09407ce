"""
Pocket Tactics code source.

Codes appear as ``<li><strong>CODE</strong> - rewards</li>`` items, and in
the text section that starts at "Here are the new Arknights: Endfield
codes" as ``CODE - 100x ...`` or ``CODE - T-Creds`` lines.
"""

import re

from src.codes.normalize import looks_like_code, normalize_code
from src.codes.schemas import CodeCandidate, CodeSourceTier
from src.ingestion.base_adapter import (
    CodeSourceAdapter,
    SourceMetadata,
    build_candidates,
    parse_published_date,
    scope_between,
    strip_html_with_line_breaks,
)

POCKET_TACTICS_URL = "https://www.pockettactics.com/arknights-endfield/codes"

_UPDATED = re.compile(r"updated:\s*([A-Za-z]+\s+\d{1,2},\s+\d{4})", re.IGNORECASE)
_SECTION_START = re.compile(r"here are the new arknights\s*:?\s*endfield codes", re.IGNORECASE)
_SECTION_END = re.compile(r"if you(?:'|’)re wondering which", re.IGNORECASE)
_HTML_LIST_ITEM = re.compile(r"<li>\s*<strong>\s*([A-Z0-9_-]{6,24})\s*</strong>\s*-", re.IGNORECASE)
_TEXT_LIST_ITEM = re.compile(r"\b([A-Z0-9_-]{6,24})\b\s*-\s*\d|\b([A-Z0-9_-]{6,24})\b\s*-\s*T-CREDS\b")


def parse_pocket_tactics_candidates(text: str, source: SourceMetadata) -> list[CodeCandidate]:
    """Extract code candidates from a Pocket Tactics codes page."""
    updated = _UPDATED.search(text)
    published_at = parse_published_date(updated.group(1) if updated else None)

    codes: dict[str, None] = {}

    for match in _HTML_LIST_ITEM.finditer(text):
        token = normalize_code(match.group(1))
        if looks_like_code(token, strong_match=True):
            codes[token] = None

    lines = strip_html_with_line_breaks(text)
    scoped = scope_between(lines, _SECTION_START, _SECTION_END).upper()
    for match in _TEXT_LIST_ITEM.finditer(scoped):
        token = normalize_code(match.group(1) or match.group(2) or "")
        if looks_like_code(token, strong_match=True):
            codes[token] = None

    return build_candidates(codes, source, published_at)


pocket_tactics_source = CodeSourceAdapter(
    id="pocket_tactics",
    name="Pocket Tactics Endfield Codes",
    url=POCKET_TACTICS_URL,
    tier=CodeSourceTier.CURATED,
    extractor=parse_pocket_tactics_candidates,
    min_interval_ms=45 * 60 * 1000,
    max_requests_per_hour=4,
)
