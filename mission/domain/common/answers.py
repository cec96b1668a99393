# mission/domain/common/answers.py
from __future__ import annotations

from typing import Optional


def normalize_answer(s: Optional[str]) -> str:
    """Drop every whitespace character and lower-case."""
    return "".join((s or "").lower().split())


def match_answer(given: Optional[str], expected: Optional[str]) -> bool:
    """
    The one answer check used for whole puzzles, sub-puzzles and final stages.
    An empty expected answer never matches.
    """
    target = normalize_answer(expected)
    if not target:
        return False
    return normalize_answer(given) == target
