from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set

from mission.domain.progress.rules import apply_partial
from mission.store.base import sort_summaries
from mission.store.models import RoomStore, RoomSummary, TeamStore


class MemoryRepo:
    """
    In-process store with the same contract as RedisRepo.
    Values are kept as JSON strings so callers never share mutable state with
    the store, which is what a real backend gives them too.
    TTL uses a monotonic clock; expired rooms simply read as missing.
    """

    def __init__(self, room_ttl_sec: int = 60 * 60 * 24, clock: Callable[[], float] = time.monotonic):
        self.room_ttl_sec = room_ttl_sec
        self._clock = clock
        self._rooms: Dict[str, str] = {}
        self._teams: Dict[str, Dict[int, str]] = {}
        self._registry: Dict[str, str] = {}
        self._expires: Dict[str, float] = {}
        self._registry_expires: float = 0.0
        self._listeners: Dict[str, Set[asyncio.Queue]] = {}
        self._lock = asyncio.Lock()

    # ----------------------------
    # Helpers
    # ----------------------------
    def _expired(self, room_code: str) -> bool:
        exp = self._expires.get(room_code)
        if exp is None or self._clock() < exp:
            return False
        self._rooms.pop(room_code, None)
        self._teams.pop(room_code, None)
        self._expires.pop(room_code, None)
        return True

    def _registry_live(self) -> bool:
        if self._registry and self._clock() >= self._registry_expires:
            self._registry.clear()
        return bool(self._registry)

    async def refresh_room_ttl(self, room_code: str) -> None:
        if room_code in self._rooms or room_code in self._teams:
            self._expires[room_code] = self._clock() + self.room_ttl_sec

    async def room_exists(self, room_code: str) -> bool:
        return not self._expired(room_code) and room_code in self._rooms

    def _changed(self, room_code: str, kind: str) -> None:
        for q in list(self._listeners.get(room_code, ())):
            q.put_nowait(kind)

    # ----------------------------
    # Room
    # ----------------------------
    async def get_room(self, room_code: str) -> Optional[RoomStore]:
        if self._expired(room_code):
            return None
        raw = self._rooms.get(room_code)
        return RoomStore.model_validate_json(raw) if raw else None

    async def put_room(self, room: RoomStore) -> None:
        self._rooms[room.room_code] = room.wire_json()
        self._expires[room.room_code] = self._clock() + self.room_ttl_sec
        self._changed(room.room_code, "room")

    # ----------------------------
    # Teams
    # ----------------------------
    async def get_teams(self, room_code: str) -> Dict[int, TeamStore]:
        if self._expired(room_code):
            return {}
        raw = self._teams.get(room_code, {})
        return {tid: TeamStore.model_validate_json(v) for tid, v in sorted(raw.items())}

    async def get_team(self, room_code: str, team_id: int) -> Optional[TeamStore]:
        return (await self.get_teams(room_code)).get(team_id)

    async def put_teams(self, room_code: str, teams: Dict[int, TeamStore]) -> None:
        self._teams[room_code] = {tid: t.wire_json() for tid, t in teams.items()}
        self._expires[room_code] = self._clock() + self.room_ttl_sec
        self._changed(room_code, "teams")

    async def put_team(self, room_code: str, team_id: int, partial: Dict[str, Any]) -> Optional[TeamStore]:
        return await self.update_team(room_code, team_id, lambda _team: partial)

    async def update_team(
        self,
        room_code: str,
        team_id: int,
        fn: Callable[[TeamStore], Dict[str, Any]],
    ) -> Optional[TeamStore]:
        async with self._lock:
            if self._expired(room_code):
                return None
            raw = self._teams.get(room_code, {}).get(team_id)
            if raw is None:
                return None
            current = TeamStore.model_validate_json(raw)
            merged = apply_partial(current, fn(current))
            self._teams[room_code][team_id] = merged.wire_json()
        self._changed(room_code, "teams")
        return merged

    # ----------------------------
    # Registry
    # ----------------------------
    async def list_room_summaries(self) -> List[RoomSummary]:
        if not self._registry_live():
            return []
        return sort_summaries([RoomSummary.model_validate_json(v) for v in self._registry.values()])

    async def put_room_summary(self, summary: RoomSummary) -> None:
        self._registry_live()
        self._registry[summary.room_code] = summary.wire_json()
        self._registry_expires = self._clock() + self.room_ttl_sec

    async def delete_room_summary(self, room_code: str) -> None:
        self._registry.pop(room_code, None)

    async def delete_room(self, room_code: str) -> None:
        # no await between the pops: readers see all or nothing
        self._rooms.pop(room_code, None)
        self._teams.pop(room_code, None)
        self._expires.pop(room_code, None)
        self._registry.pop(room_code, None)
        self._changed(room_code, "deleted")

    # ----------------------------
    # Change feed
    # ----------------------------
    async def listen(self, room_code: str) -> AsyncIterator[str]:
        q: asyncio.Queue = asyncio.Queue()
        self._listeners.setdefault(room_code, set()).add(q)
        try:
            while True:
                yield await q.get()
        finally:
            subs = self._listeners.get(room_code)
            if subs is not None:
                subs.discard(q)
                if not subs:
                    self._listeners.pop(room_code, None)

    def listener_count(self, room_code: str) -> int:
        return len(self._listeners.get(room_code, ()))
