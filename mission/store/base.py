# mission/store/base.py
from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol

from mission.store.models import RoomStore, RoomSummary, TeamStore


class StateStore(Protocol):
    """
    Persistence contract keyed by room code.
    Satisfied by RedisRepo (shared, multi-device) and MemoryRepo (single process).
    """

    async def room_exists(self, room_code: str) -> bool: ...

    async def get_room(self, room_code: str) -> Optional[RoomStore]: ...

    async def put_room(self, room: RoomStore) -> None: ...

    async def get_teams(self, room_code: str) -> Dict[int, TeamStore]: ...

    async def get_team(self, room_code: str, team_id: int) -> Optional[TeamStore]: ...

    async def put_teams(self, room_code: str, teams: Dict[int, TeamStore]) -> None: ...

    async def put_team(self, room_code: str, team_id: int, partial: Dict[str, Any]) -> Optional[TeamStore]: ...

    async def update_team(
        self,
        room_code: str,
        team_id: int,
        fn: Callable[[TeamStore], Dict[str, Any]],
    ) -> Optional[TeamStore]: ...

    async def list_room_summaries(self) -> List[RoomSummary]: ...

    async def put_room_summary(self, summary: RoomSummary) -> None: ...

    async def delete_room_summary(self, room_code: str) -> None: ...

    async def delete_room(self, room_code: str) -> None: ...

    async def refresh_room_ttl(self, room_code: str) -> None: ...


class ChangeFeed(Protocol):
    """Push notifications that a room's stored state changed (realtime sync)."""

    def listen(self, room_code: str) -> AsyncIterator[str]: ...


def sort_summaries(rooms: List[RoomSummary]) -> List[RoomSummary]:
    """Active rooms before ended ones, newest first within each group."""
    return sorted(rooms, key=lambda r: (r.is_ended, -r.created_at))
