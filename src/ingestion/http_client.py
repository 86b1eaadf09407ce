"""
HTTP layer for source pages: conditional GET with a hard deadline.

Provides:
- SourceFetchError: raised for non-2xx statuses, timeouts and transport errors
- PageFetch: what a fetch returned (validators, hash, body when changed)
- fetch_page(): conditional GET honoring the validators from the last fetch

No retries happen here. A failed fetch is reported to the
orchestrator, which applies per-source backoff before trying again.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass

import httpx

from src.codes.schemas import SourceFetchContext

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "endfield-codes code-watch/0.1"
TEXT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,text/plain;q=0.8,*/*;q=0.7"
BODY_PREVIEW_CHARS = 180


class SourceFetchError(Exception):
    """A source page could not be fetched."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


@dataclass
class PageFetch:
    """Raw result of fetching one source page."""

    fetched_url: str
    http_status: int
    not_modified: bool
    etag: str | None = None
    last_modified: str | None = None
    content_hash: str | None = None
    text: str | None = None


def content_hash(text: str) -> str:
    """SHA-256 hex digest of a page body."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def body_preview(text: str) -> str:
    """Truncate a response body for error messages."""
    if len(text) > BODY_PREVIEW_CHARS:
        return f"{text[:BODY_PREVIEW_CHARS]}..."
    return text


def build_conditional_headers(context: SourceFetchContext) -> dict[str, str]:
    """Request headers, including validators from the previous fetch."""
    headers = {
        "accept": TEXT_ACCEPT,
        "user-agent": DEFAULT_USER_AGENT,
    }
    if context.state.last_etag:
        headers["if-none-match"] = context.state.last_etag
    if context.state.last_modified:
        headers["if-modified-since"] = context.state.last_modified
    return headers


async def fetch_page(url: str, context: SourceFetchContext) -> PageFetch:
    """
    Fetch a source page, short-circuiting when it has not changed.

    A 304 echoes the stored validators back. A 200 whose body hashes to the
    stored content hash is also reported as not modified, for servers that
    ignore conditional headers.

    Args:
        url: Page URL
        context: Source state (validators) and the fetch deadline

    Returns:
        PageFetch; ``text`` is set only when the page changed

    Raises:
        SourceFetchError: On non-2xx status, timeout or transport failure
    """
    timeout_seconds = context.timeout_ms / 1000
    headers = build_conditional_headers(context)

    try:
        async with asyncio.timeout(timeout_seconds):
            async with httpx.AsyncClient(
                timeout=timeout_seconds,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, headers=headers)
    except (TimeoutError, httpx.TimeoutException) as e:
        raise SourceFetchError(f"Request timed out after {context.timeout_ms}ms") from e
    except httpx.HTTPError as e:
        raise SourceFetchError(f"Request failed: {type(e).__name__}: {e}") from e

    fetched_url = str(response.url) or url
    etag = response.headers.get("etag")
    last_modified = response.headers.get("last-modified")

    if response.status_code == 304:
        return PageFetch(
            fetched_url=fetched_url,
            http_status=response.status_code,
            not_modified=True,
            etag=etag or context.state.last_etag,
            last_modified=last_modified or context.state.last_modified,
            content_hash=context.state.last_content_hash,
        )

    text = response.text

    if not response.is_success:
        raise SourceFetchError(
            f"HTTP {response.status_code}: {body_preview(text)}",
            status_code=response.status_code,
            response_body=text,
        )

    digest = content_hash(text)
    unchanged = context.state.last_content_hash is not None and context.state.last_content_hash == digest

    return PageFetch(
        fetched_url=fetched_url,
        http_status=response.status_code,
        not_modified=unchanged,
        etag=etag,
        last_modified=last_modified,
        content_hash=digest,
        text=None if unchanged else text,
    )
