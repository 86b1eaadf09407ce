"""
Game8 code source.

Game8 lists codes in tables under a "Redeem Codes" heading. The first cell
of each row holds the code, either as a copy-button attribute
(``data-clipboard-text``/``value``) or as the leading text before a
``<br>``. Announcements in the body text ("XXXX is available") are picked
up as well.
"""

import re

from src.codes.normalize import looks_like_code, normalize_code
from src.codes.schemas import CodeCandidate, CodeSourceTier
from src.ingestion.base_adapter import (
    CodeSourceAdapter,
    SourceMetadata,
    build_candidates,
    parse_published_date,
    strip_html,
)

GAME8_URL = "https://game8.co/games/Arknights-Endfield/archives/571509"

_LAST_UPDATED = re.compile(r"last updated[:\s]*([A-Za-z]{3,9}\s+\d{1,2},\s+\d{4})", re.IGNORECASE)
_TABLE = re.compile(r"<table\b.*?</table>", re.IGNORECASE | re.DOTALL)
_ROW = re.compile(r"<tr\b.*?</tr>", re.IGNORECASE | re.DOTALL)
_CELL = re.compile(r"<td\b.*?</td>", re.IGNORECASE | re.DOTALL)
_HEADER_CELL = re.compile(r"<th\b", re.IGNORECASE)
_REDEEM_CODES = re.compile(r"\bredeem\s*codes\b", re.IGNORECASE)
_LINE_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_LEADING_TOKEN = re.compile(r"^\s*([A-Z0-9_-]{6,24})\b")

_VALUE_PATTERNS = (
    re.compile(r'\bdata-clipboard-text\s*=\s*"([^"]+)"', re.IGNORECASE),
    re.compile(r'\bvalue\s*=\s*"([^"]+)"', re.IGNORECASE),
)
_NARRATIVE_PATTERNS = (
    re.compile(r"\b([A-Z0-9_-]{6,24})\b\s+IS\s+AVAILABLE\b"),
    re.compile(r"\b([A-Z0-9_-]{6,24})\b\s+IS\s+LIMITED\b"),
)


def extract_codes_from_cell(cell_html: str) -> list[str]:
    """Codes found in one Game8 table cell."""
    codes: dict[str, None] = {}

    for pattern in _VALUE_PATTERNS:
        for match in pattern.finditer(cell_html):
            token = normalize_code(match.group(1))
            if looks_like_code(token, strong_match=True):
                codes[token] = None

    first_segment = _LINE_BREAK.split(cell_html, maxsplit=1)[0]
    leading = _LEADING_TOKEN.match(strip_html(first_segment).upper())
    if leading:
        token = normalize_code(leading.group(1))
        if looks_like_code(token, strong_match=True):
            codes[token] = None

    return list(codes)


def parse_game8_candidates(text: str, source: SourceMetadata) -> list[CodeCandidate]:
    """Extract code candidates from a Game8 codes page."""
    updated = _LAST_UPDATED.search(text)
    published_at = parse_published_date(updated.group(1) if updated else None)

    codes: dict[str, None] = {}

    code_tables = [
        table for table in _TABLE.findall(text)
        if _REDEEM_CODES.search(strip_html(table))
    ]
    for table in code_tables:
        for row in _ROW.findall(table):
            if _HEADER_CELL.search(row):
                continue
            cells = _CELL.findall(row)
            if not cells:
                continue
            for code in extract_codes_from_cell(cells[0]):
                codes[code] = None

    plain = strip_html(text).upper()
    for pattern in _NARRATIVE_PATTERNS:
        for match in pattern.finditer(plain):
            token = normalize_code(match.group(1))
            if looks_like_code(token, strong_match=True):
                codes[token] = None

    return build_candidates(codes, source, published_at)


game8_source = CodeSourceAdapter(
    id="game8",
    name="Game8 Endfield Codes",
    url=GAME8_URL,
    tier=CodeSourceTier.CURATED,
    extractor=parse_game8_candidates,
    min_interval_ms=45 * 60 * 1000,
    max_requests_per_hour=4,
)
