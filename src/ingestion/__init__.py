"""Code sources - adapters, fetch client, and extraction helpers."""

from src.ingestion.base_adapter import CodeSourceAdapter, SourceMetadata
from src.ingestion.http_client import SourceFetchError
from src.ingestion.registry import (
    ALL_CODE_SOURCES,
    AVAILABLE_CODE_SOURCE_IDS,
    resolve_code_sources,
)

__all__ = [
    "ALL_CODE_SOURCES",
    "AVAILABLE_CODE_SOURCE_IDS",
    "CodeSourceAdapter",
    "SourceFetchError",
    "SourceMetadata",
    "resolve_code_sources",
]
