"""
Destructoid code source.

Active codes are bullets of the form ``CODE – Redeem for ...`` between the
"Active Arknights: Endfield codes" and "Expired Arknights: Endfield codes"
headings. Everything under the expired heading is ignored.
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

DESTRUCTOID_URL = "https://www.destructoid.com/arknights-endfield-codes/"

_UPDATED = re.compile(r"updated:\s*([A-Za-z]+\s+\d{1,2},\s+\d{4})", re.IGNORECASE)
_ACTIVE_HEADING = re.compile(r"active\s+arknights\s*:?\s*endfield\s+codes", re.IGNORECASE)
_EXPIRED_HEADING = re.compile(r"expired\s+arknights\s*:?\s*endfield\s+codes", re.IGNORECASE)
_REDEEM_BULLET = re.compile(r"\b([A-Z0-9_-]{6,24})\s*[–—-]\s*REDEEM\b")


def parse_destructoid_candidates(text: str, source: SourceMetadata) -> list[CodeCandidate]:
    """Extract code candidates from a Destructoid codes page."""
    updated = _UPDATED.search(text)
    published_at = parse_published_date(updated.group(1) if updated else None)

    lines = strip_html_with_line_breaks(text)
    scoped = scope_between(lines, _ACTIVE_HEADING, _EXPIRED_HEADING).upper()

    codes: dict[str, None] = {}
    for match in _REDEEM_BULLET.finditer(scoped):
        token = normalize_code(match.group(1))
        if looks_like_code(token, strong_match=True):
            codes[token] = None

    return build_candidates(codes, source, published_at)


destructoid_source = CodeSourceAdapter(
    id="destructoid",
    name="Destructoid Endfield Codes",
    url=DESTRUCTOID_URL,
    tier=CodeSourceTier.CURATED,
    extractor=parse_destructoid_candidates,
    min_interval_ms=45 * 60 * 1000,
    max_requests_per_hour=4,
)
