# mission/sync/notify.py
from __future__ import annotations

import asyncio
from typing import Dict


class ChangeNotifier:
    """
    Local-write signal for the polling loop: a writer calls notify(room) and
    any poller of that room stops waiting for its next tick.
    Waking up on a timeout and waking up on a signal look the same to the
    poller; it re-reads the store either way.
    """

    def __init__(self) -> None:
        self._events: Dict[str, asyncio.Event] = {}

    def _event(self, room_code: str) -> asyncio.Event:
        ev = self._events.get(room_code)
        if ev is None:
            ev = self._events[room_code] = asyncio.Event()
        return ev

    def notify(self, room_code: str) -> None:
        self._event(room_code).set()

    async def wait(self, room_code: str, timeout: float) -> bool:
        """True when woken by notify(), False on timeout."""
        ev = self._event(room_code)
        try:
            await asyncio.wait_for(ev.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False
        finally:
            ev.clear()
