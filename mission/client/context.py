# mission/client/context.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, List, Optional, Set

from mission.sync.base import OnRoom, OnTeams, Transport, Unsubscribe

logger = logging.getLogger(__name__)


class ClientContext:
    """
    Everything one controller holds open: its transport, the live
    subscription and the background writes it has fired off.
    Nothing here is module-level, so two controllers never share a socket.
    """

    def __init__(self, transport: Transport) -> None:
        self.transport = transport
        self.room_code: Optional[str] = None
        self._unsubscribes: List[Unsubscribe] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, room_code: str, on_room: OnRoom, on_teams: OnTeams) -> None:
        """Replace any previous subscription with one for `room_code`."""
        self.release()
        self.room_code = room_code
        self._unsubscribes.append(self.transport.subscribe(room_code, on_room, on_teams))

    def release(self) -> None:
        while self._unsubscribes:
            self._unsubscribes.pop()()
        self.room_code = None

    @property
    def subscribed(self) -> bool:
        return bool(self._unsubscribes)

    def spawn(self, coro: Awaitable, what: str) -> asyncio.Task:
        """Fire-and-forget; failures are logged, never raised into the caller."""
        task = asyncio.ensure_future(coro)
        self._pending.add(task)

        def _done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.warning("background %s failed: %r", what, exc)

        task.add_done_callback(_done)
        return task

    async def drain(self) -> None:
        """Wait for every background write fired so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        self.release()
        await self.drain()
        await self.transport.close()
