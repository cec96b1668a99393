from __future__ import annotations

from .catalog import (
    BLUE_HOUSE,
    FIRST_LOCATION,
    FRANCE,
    INCHEON_AIRPORT,
    LOCATION_ORDER,
    PUZZLES,
    SAN_FRANCISCO,
    FinalStage,
    PuzzleData,
    SubPuzzle,
    get_puzzle,
)

__all__ = [
    "BLUE_HOUSE",
    "FIRST_LOCATION",
    "FRANCE",
    "INCHEON_AIRPORT",
    "LOCATION_ORDER",
    "PUZZLES",
    "SAN_FRANCISCO",
    "FinalStage",
    "PuzzleData",
    "SubPuzzle",
    "get_puzzle",
]
