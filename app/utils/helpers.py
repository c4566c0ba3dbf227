"""
Common utility functions and helpers.
"""
import logging
import os
import re

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def count_words(text: str) -> int:
    """
    Count words by splitting on runs of whitespace.

    Args:
        text: Text to measure

    Returns:
        Number of whitespace-separated tokens (0 for blank text)
    """
    stripped = text.strip()
    if not stripped:
        return 0
    return len(_WHITESPACE.split(stripped))


def safe_remove(path: str) -> None:
    """Delete a file, logging instead of raising if it cannot be removed."""
    try:
        if path and os.path.exists(path):
            os.remove(path)
    except OSError as exc:
        logger.warning("Could not delete file %s: %s", path, exc)


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def total_pages(total: int, limit: int) -> int:
    """Number of pages of size *limit* needed for *total* items."""
    if limit <= 0:
        return 0
    return (total + limit - 1) // limit
