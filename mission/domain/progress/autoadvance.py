# mission/domain/progress/autoadvance.py
from __future__ import annotations

from typing import Iterable, Literal

from mission.domain.puzzles.catalog import PuzzleData

# What solving the sub-puzzles of a location leads to
Advance = Literal["PENDING", "FINAL_STAGE", "COMPLETE", "NONE"]


def all_sub_puzzles_solved(puzzle: PuzzleData, solved: Iterable[str]) -> bool:
    ids = puzzle.sub_puzzle_ids
    if not ids:
        return False
    done = set(solved)
    return all(i in done for i in ids)


def next_advance(puzzle: PuzzleData, solved: Iterable[str]) -> Advance:
    """
    Auto-advance rule for locations with sub-puzzles:
      - some sub-puzzle still open           -> PENDING
      - all solved, location has final stage -> FINAL_STAGE (free-text input mode)
      - all solved, no final stage           -> COMPLETE (complete the location now)
    Locations without sub-puzzles are answered directly and report NONE.
    """
    if not puzzle.sub_puzzles:
        return "NONE"
    if not all_sub_puzzles_solved(puzzle, solved):
        return "PENDING"
    if puzzle.final_stage is not None:
        return "FINAL_STAGE"
    return "COMPLETE"


def solved_count(puzzle: PuzzleData, solved: Iterable[str]) -> int:
    done = set(solved)
    return sum(1 for i in puzzle.sub_puzzle_ids if i in done)
