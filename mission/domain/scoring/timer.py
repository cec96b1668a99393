# mission/domain/scoring/timer.py
from __future__ import annotations

from typing import Optional

from mission.store.models import RoomStore
from mission.util.timeutil import minutes_to_ms

# Elapsed time beyond this is treated as stale or corrupt data, not a real expiry
SANITY_BOUND_MS = 24 * 60 * 60 * 1000
URGENT_BELOW_MS = 5 * 60 * 1000


def elapsed_ms(room: RoomStore, now: int) -> int:
    if not room.is_started or not room.start_time:
        return 0
    return max(0, now - room.start_time)


def remaining_ms(room: RoomStore, now: int) -> int:
    return max(0, minutes_to_ms(room.duration_minutes) - elapsed_ms(room, now))


def is_glitch(room: RoomStore, now: int) -> bool:
    """startTime missing/non-positive, or so old the reading cannot be a live game."""
    if not room.start_time or room.start_time <= 0:
        return True
    return (now - room.start_time) > SANITY_BOUND_MS


def should_expire(room: Optional[RoomStore], now: int) -> bool:
    """
    Client-local expiry check against the shared startTime.
    Suppressed on glitchy data so a stale session never fires a false FAILURE.
    """
    if room is None or not room.is_started:
        return False
    if is_glitch(room, now):
        return False
    return remaining_ms(room, now) <= 0


def is_urgent(remaining: Optional[int]) -> bool:
    return remaining is not None and remaining < URGENT_BELOW_MS


def format_clock(ms: int) -> str:
    """MM:SS, floored at zero."""
    total = max(0, int(ms)) // 1000
    return f"{total // 60:02d}:{total % 60:02d}"
