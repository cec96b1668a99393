# mission/client/timer.py
from __future__ import annotations

from typing import Callable, Optional

from mission.domain.scoring.timer import format_clock, is_urgent, remaining_ms, should_expire
from mission.store.models import RoomStore
from mission.util.timeutil import now_ms


class MissionTimer:
    """
    Client-local countdown against the room's shared startTime.
    check() reports expiry once per room start; glitchy timestamps never fire.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self.clock = clock
        self._fired_for: Optional[int] = None

    def remaining(self, room: Optional[RoomStore]) -> Optional[int]:
        if room is None or not room.is_started:
            return None
        return remaining_ms(room, self.clock())

    def display(self, room: Optional[RoomStore]) -> str:
        left = self.remaining(room)
        if left is None and room is not None:
            return format_clock(room.duration_minutes * 60 * 1000)
        return format_clock(left or 0)

    def urgent(self, room: Optional[RoomStore]) -> bool:
        return is_urgent(self.remaining(room))

    def check(self, room: Optional[RoomStore]) -> bool:
        if room is None or not should_expire(room, self.clock()):
            return False
        if self._fired_for == room.start_time:
            return False
        self._fired_for = room.start_time
        return True

    def reset(self) -> None:
        self._fired_for = None
