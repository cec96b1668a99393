# mission/transport/ws_manager.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass
class Conn:
    pid: str
    ws: WebSocket


class WSManager:
    """
    In-memory peer registry of the host relay.
    - room_code -> pid -> websocket
    Transport-only: no store access, no game rules.
    """
    def __init__(self) -> None:
        self._rooms: Dict[str, Dict[str, Conn]] = {}
        self._lock = asyncio.Lock()

    async def add(self, room_code: str, pid: str, ws: WebSocket) -> None:
        async with self._lock:
            self._rooms.setdefault(room_code, {})[pid] = Conn(pid=pid, ws=ws)

    async def remove(self, room_code: str, pid: str) -> None:
        async with self._lock:
            room = self._rooms.get(room_code)
            if not room:
                return
            room.pop(pid, None)
            if not room:
                self._rooms.pop(room_code, None)

    async def _conns(self, room_code: str) -> List[Conn]:
        # copy conns under lock, send outside lock
        async with self._lock:
            return list(self._rooms.get(room_code, {}).values())

    async def broadcast(self, room_code: str, event: dict, exclude_pid: Optional[str] = None) -> int:
        """Send to every peer of the room; returns how many sends succeeded."""
        sent = 0
        for c in await self._conns(room_code):
            if exclude_pid and c.pid == exclude_pid:
                continue
            try:
                await c.ws.send_json(event)
                sent += 1
            except Exception:
                # dead socket; ws.py cleans it up on disconnect
                logger.debug("send to %s/%s failed", room_code, c.pid, exc_info=True)
        return sent

    async def close_room(self, room_code: str, code: int = 4000) -> None:
        """Close every peer socket of a room and forget the room."""
        async with self._lock:
            room = self._rooms.pop(room_code, {})
        for c in room.values():
            try:
                await c.ws.close(code=code)
            except Exception:
                logger.debug("close of %s/%s failed", room_code, c.pid, exc_info=True)

    async def room_size(self, room_code: str) -> int:
        async with self._lock:
            return len(self._rooms.get(room_code, {}))
