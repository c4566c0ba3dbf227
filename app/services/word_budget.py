"""
Word budget allocation.

The total target of a job is ``requested_pages * WORDS_PER_PAGE``; each section
then receives ``round(total * weight)`` words.  Weights are deliberately not
normalised: the per-section targets of a job need not add up to the total.
"""
from __future__ import annotations

import math
from typing import Dict, Iterable

WORDS_PER_PAGE: int = 475

DEFAULT_SECTION_WEIGHT: float = 0.20

SECTION_WEIGHTS: Dict[str, float] = {
    "OBJECTIVE": 0.10,
    "INTRODUCTION": 0.15,
    "CONTENT": 0.50,
    "BODY": 0.50,
    "ANALYSIS": 0.30,
    "DISCUSSION": 0.30,
    "REFERENCES": 0.10,
    "CONCLUSION": 0.15,
    "SUMMARY": 0.15,
}


def words_for_pages(pages: int) -> int:
    """Target word count for *pages* pages."""
    return pages * WORDS_PER_PAGE


def pages_for_words(words: int) -> int:
    """Number of pages needed to hold *words* words."""
    return math.ceil(words / WORDS_PER_PAGE)


def section_weight(section_name: str) -> float:
    return SECTION_WEIGHTS.get(section_name.upper(), DEFAULT_SECTION_WEIGHT)


def _round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; 237.5 must give 238 here.
    return int(math.floor(value + 0.5))


def section_word_target(total_words: int, section_name: str) -> int:
    return _round_half_up(total_words * section_weight(section_name))


def allocate(total_words: int, section_names: Iterable[str]) -> Dict[str, int]:
    """
    Per-section word targets, in section order.

    >>> allocate(1000, ["CONTENT", "APPENDIX"])
    {'CONTENT': 500, 'APPENDIX': 200}
    """
    return {name: section_word_target(total_words, name) for name in section_names}
