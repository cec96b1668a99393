from __future__ import annotations

from .ranking import final_time_ms, leaderboard, rank_teams, stage_breakdown
from .timer import elapsed_ms, format_clock, remaining_ms, should_expire

__all__ = [
    "elapsed_ms",
    "final_time_ms",
    "format_clock",
    "leaderboard",
    "rank_teams",
    "remaining_ms",
    "should_expire",
    "stage_breakdown",
]
