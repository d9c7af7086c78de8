"""
Text utilities for shop names and fixed-width receipts.
"""

import unicodedata
from typing import Optional


def normalize_shop_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize a shop name for comparison and prefix matching.

    - "  Shree Ganesh Stores " → "shree ganesh stores"
    - full-width and compatibility characters fold to their plain forms

    Args:
        name: Shop name as typed

    Returns:
        Case-folded string, or None if input is empty
    """
    if not name:
        return None

    name = name.strip()

    if not name:
        return None

    return unicodedata.normalize("NFKC", name).casefold()


def clean_shop_name(name: Optional[str], max_length: int = 255) -> Optional[str]:
    """
    Clean shop name for storage (preserves case).

    - Strips whitespace
    - Collapses internal runs of whitespace
    - Truncates to max length
    - Returns None for empty/whitespace-only strings
    """
    if not name:
        return None

    name = " ".join(name.split())

    if not name:
        return None

    if len(name) > max_length:
        name = name[:max_length]

    return name


def fit(text: str, width: int) -> str:
    """Truncate or right-pad text to exactly ``width`` characters."""
    return text[:width].ljust(width)


def center(text: str, width: int) -> str:
    """Center text in ``width`` characters, truncating if longer."""
    return text[:width].center(width).rstrip()
