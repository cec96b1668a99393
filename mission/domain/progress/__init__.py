from __future__ import annotations

from .autoadvance import all_sub_puzzles_solved, next_advance
from .rules import (
    MAX_HINTS,
    complete_location,
    end_room,
    join_team,
    new_room,
    new_team,
    new_teams,
    solve_sub_puzzle,
    start_room,
    use_hint,
)

__all__ = [
    "MAX_HINTS",
    "all_sub_puzzles_solved",
    "complete_location",
    "end_room",
    "join_team",
    "new_room",
    "new_team",
    "new_teams",
    "next_advance",
    "solve_sub_puzzle",
    "start_room",
    "use_hint",
]
