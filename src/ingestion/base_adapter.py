"""
Base adapter and shared extraction helpers for code sources.

Each source is a fixed, hand-written extractor for one fan site. A source
is declared as a ``CodeSourceAdapter`` with its rate-limit metadata and an
extractor function ``(page_text, metadata) -> candidates``. The base class
provides:
- Conditional fetching (via http_client.fetch_page)
- Skipping extraction when the page is unchanged
- Logging

Rate limits (``min_interval_ms``, ``max_requests_per_hour``) are declared
here but enforced by the orchestrator, not by the adapter.
"""

import html
import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from src.codes.schemas import (
    CodeCandidate,
    CodeSourceTier,
    SourceFetchContext,
    SourceFetchResult,
)
from src.ingestion.http_client import fetch_page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceMetadata:
    """Identity of a source, stamped onto every candidate it yields."""

    id: str
    name: str
    url: str
    tier: CodeSourceTier


SourceExtractor = Callable[[str, SourceMetadata], list[CodeCandidate]]


class CodeSourceAdapter:
    """
    A code source: metadata, politeness limits, and an extractor.

    Usage:
        adapter = CodeSourceAdapter(
            id="game8",
            name="Game8 Endfield Codes",
            url="https://game8.co/...",
            tier=CodeSourceTier.CURATED,
            extractor=parse_game8_candidates,
            min_interval_ms=45 * 60 * 1000,
            max_requests_per_hour=4,
        )
        result = await adapter.fetch(SourceFetchContext(state=state, timeout_ms=10_000))
    """

    def __init__(
        self,
        id: str,
        name: str,
        url: str,
        tier: CodeSourceTier,
        extractor: SourceExtractor,
        min_interval_ms: int,
        max_requests_per_hour: int,
    ):
        self.metadata = SourceMetadata(id=id, name=name, url=url, tier=tier)
        self.extractor = extractor
        self.min_interval_ms = min_interval_ms
        self.max_requests_per_hour = max_requests_per_hour

    @property
    def id(self) -> str:
        return self.metadata.id

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def url(self) -> str:
        return self.metadata.url

    @property
    def tier(self) -> CodeSourceTier:
        return self.metadata.tier

    def extract(self, text: str) -> list[CodeCandidate]:
        """Run this source's extractor over raw page text."""
        return self.extractor(text, self.metadata)

    async def fetch(self, context: SourceFetchContext) -> SourceFetchResult:
        """
        Fetch the source page and extract candidates when it changed.

        Raises:
            SourceFetchError: On HTTP error, timeout or transport failure
        """
        logger.debug(
            "Code source fetch request: source=%s url=%s timeout_ms=%d",
            self.id,
            self.url,
            context.timeout_ms,
        )

        page = await fetch_page(self.url, context)
        if page.not_modified or page.text is None:
            candidates: list[CodeCandidate] = []
        else:
            candidates = self.extract(page.text)

        logger.debug(
            "Code source fetch response: source=%s status=%d not_modified=%s candidates=%d",
            self.id,
            page.http_status,
            page.not_modified,
            len(candidates),
        )

        return SourceFetchResult(
            fetched_url=page.fetched_url,
            http_status=page.http_status,
            not_modified=page.not_modified,
            etag=page.etag,
            last_modified=page.last_modified,
            content_hash=page.content_hash,
            candidates=candidates,
        )

    def __repr__(self) -> str:
        return f"CodeSourceAdapter(id={self.id!r}, tier={self.tier.value!r})"


# Common extraction utilities used across sources

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE | re.DOTALL)
_STYLE_BLOCK = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE | re.DOTALL)
_BLOCK_END = re.compile(r"</(p|li|h1|h2|h3|h4|h5|h6|tr|div|section|article|ul|ol)>", re.IGNORECASE)
_LINE_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]+>")

_DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y")


def decode_entities(text: str) -> str:
    """Decode HTML entities, turning non-breaking spaces into plain spaces."""
    return html.unescape(text).replace("\xa0", " ")


def strip_html(text: str) -> str:
    """
    Reduce markup to a single line of text.

    Scripts and styles are dropped, every tag becomes a space, whitespace
    runs collapse to one space.
    """
    text = _SCRIPT_BLOCK.sub(" ", text)
    text = _STYLE_BLOCK.sub(" ", text)
    text = _ANY_TAG.sub(" ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return decode_entities(text)


def strip_html_with_line_breaks(text: str) -> str:
    """
    Reduce markup to text, keeping one line per block element.

    Closing block tags and ``<br>`` become newlines; other tags become
    spaces. Blank lines and edge whitespace on each line are removed.
    """
    text = _SCRIPT_BLOCK.sub("\n", text)
    text = _STYLE_BLOCK.sub("\n", text)
    text = _BLOCK_END.sub("\n", text)
    text = _LINE_BREAK.sub("\n", text)
    text = _ANY_TAG.sub(" ", text)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n[ \t]+", "\n", text)
    text = re.sub(r"\n{2,}", "\n", text)
    return decode_entities(text.strip())


def scope_between(text: str, start: re.Pattern, end: re.Pattern) -> str:
    """
    Slice text from the ``start`` heading up to the ``end`` heading.

    Falls back to the whole text when ``start`` is missing, and to the rest
    of the text when ``end`` is missing or precedes ``start``.
    """
    start_match = start.search(text)
    if start_match is None:
        return text
    end_match = end.search(text, start_match.start() + 1)
    stop = end_match.start() if end_match else len(text)
    return text[start_match.start():stop]


def parse_published_date(value: str | None) -> datetime | None:
    """Parse dates like "January 22, 2026" or "Jan 22, 2026" into UTC midnight."""
    if not value:
        return None
    value = " ".join(value.split())
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def build_candidates(
    codes: Iterable[str],
    source: SourceMetadata,
    published_at: datetime | None = None,
) -> list[CodeCandidate]:
    """Wrap extracted code strings as candidates attributed to ``source``."""
    return [
        CodeCandidate(
            code=code,
            source_id=source.id,
            source_name=source.name,
            source_url=source.url,
            source_tier=source.tier,
            published_at=published_at,
            reference_url=source.url,
        )
        for code in codes
    ]
