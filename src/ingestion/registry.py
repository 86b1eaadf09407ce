"""Catalog of the built-in code sources and lookup by configured id."""

from src.ingestion.base_adapter import CodeSourceAdapter
from src.ingestion.destructoid_adapter import destructoid_source
from src.ingestion.game8_adapter import game8_source
from src.ingestion.pocket_tactics_adapter import pocket_tactics_source

ALL_CODE_SOURCES: list[CodeSourceAdapter] = [
    game8_source,
    destructoid_source,
    pocket_tactics_source,
]

_SOURCE_MAP = {source.id: source for source in ALL_CODE_SOURCES}

AVAILABLE_CODE_SOURCE_IDS = [source.id for source in ALL_CODE_SOURCES]


def get_code_source(source_id: str) -> CodeSourceAdapter | None:
    """Look up a built-in source by id."""
    return _SOURCE_MAP.get(source_id.strip())


def resolve_code_sources(
    source_ids: list[str],
) -> tuple[list[CodeSourceAdapter], list[str]]:
    """
    Map configured ids to adapters, preserving the configured order.

    Returns:
        (sources, unknown_source_ids)
    """
    sources: list[CodeSourceAdapter] = []
    unknown: list[str] = []
    for source_id in source_ids:
        source = get_code_source(source_id)
        if source is None:
            unknown.append(source_id)
            continue
        sources.append(source)
    return sources, unknown
