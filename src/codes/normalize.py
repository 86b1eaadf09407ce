"""
Code token normalization and the "looks like a code" filter.

Shared by the source extractors (first pass) and the registry (second
pass, and pruning of stored codes when the denylist changes).
"""

import re

MIN_CODE_LENGTH = 6
MAX_CODE_LENGTH = 24

_NON_CODE_CHARS = re.compile(r"[^A-Z0-9_-]")
_HAS_LETTER = re.compile(r"[A-Z]")
_HAS_DIGIT = re.compile(r"\d")

# Words that match the code shape on fan-site pages but are never codes
NON_CODE_TOKENS = frozenset({
    "HTTPS",
    "HTTP",
    "WWW",
    "YOUTUBE",
    "ENDMIN",
    "OFFICIAL",
    "CHANNEL",
    "ARTICLE",
    "NEWS",
    "DETAILS",
    "WATCHLIST",
    "JANUARY",
    "FEBRUARY",
    "MARCH",
    "APRIL",
    "MAY",
    "JUNE",
    "JULY",
    "AUGUST",
    "SEPTEMBER",
    "OCTOBER",
    "NOVEMBER",
    "DECEMBER",
    "RELATED",
    "FEATURE",
    "REWARD",
    "CHARACTERS",
    "RECOMMENDED",
    "IN-GAME",
    "INGAME",
    "COPIED",
    "EXPIRED",
    "ACTIVE",
    "CODES",
    "CODE",
})


def normalize_code(raw: str) -> str:
    """
    Uppercase a token and drop every character outside ``[A-Z0-9_-]``.

    Example:
        normalize_code("G8-code!!") -> "G8-CODE"
    """
    return _NON_CODE_CHARS.sub("", (raw or "").upper())


def looks_like_code(raw: str, strong_match: bool = False) -> bool:
    """
    Check whether a token is shaped like a redeem code.

    Args:
        raw: Token to check (normalized internally)
        strong_match: The token came from an unambiguous delimiter (a table
            cell, a "- Redeem" suffix), so a digit is not required

    Returns:
        True if the token passes length, charset and denylist checks
    """
    token = normalize_code(raw)
    if len(token) < MIN_CODE_LENGTH or len(token) > MAX_CODE_LENGTH:
        return False
    if not _HAS_LETTER.search(token):
        return False
    if token.isdigit():
        return False
    if token in NON_CODE_TOKENS:
        return False
    if not strong_match and not _HAS_DIGIT.search(token):
        return False
    if token.startswith("HTTP"):
        return False
    return True


def is_trackable_code(raw: str) -> bool:
    """Check whether a token may live in the registry."""
    return looks_like_code(raw, strong_match=True)
