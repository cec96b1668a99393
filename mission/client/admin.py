# mission/client/admin.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from redis.exceptions import RedisError

from mission.client.context import ClientContext
from mission.domain.common.types import AdminView, LocationId
from mission.domain.lifecycle.handlers import create_room, delete_room_cmd
from mission.domain.progress.rules import end_room, start_room
from mission.domain.puzzles.catalog import LOCATION_ORDER
from mission.domain.scoring.ranking import PENALTY_PER_HINT_MS, LeaderboardRow, leaderboard
from mission.domain.scoring.timer import format_clock, is_urgent, remaining_ms
from mission.store.base import StateStore
from mission.store.models import RoomStore, RoomSummary, TeamStore
from mission.sync.base import Transport, TransportUnavailable
from mission.util.timeutil import now_ms

logger = logging.getLogger(__name__)


@dataclass
class TeamStatus:
    """One row of the live progress grid."""
    team_id: int
    name: str
    members: List[str]
    completed: List[LocationId]
    unlocked: List[LocationId]
    hint_count: int
    finished: bool

    def location_state(self, loc: LocationId) -> str:
        if loc in self.completed:
            return "completed"
        if loc in self.unlocked:
            return "active"
        return "locked"


@dataclass
class AdminState:
    view: AdminView = "LOBBY"
    rooms: List[RoomSummary] = field(default_factory=list)
    room: Optional[RoomStore] = None
    teams: Dict[int, TeamStore] = field(default_factory=dict)
    signal: str = ""


class AdminController:
    """
    Admin side: LOBBY lists and creates rooms, DASHBOARD watches one room and
    owns its start/end switches. Room-level writes go through the transport
    so every participant sees them; registry reads go to the store.
    """

    def __init__(
        self,
        repo: StateStore,
        transport: Transport,
        clock: Callable[[], int] = now_ms,
        per_hint_ms: int = PENALTY_PER_HINT_MS,
        default_duration_min: int = 60,
        poll_interval: float = 2.0,
    ) -> None:
        self.repo = repo
        self.ctx = ClientContext(transport)
        self.clock = clock
        self.per_hint_ms = per_hint_ms
        self.default_duration_min = default_duration_min
        self.poll_interval = poll_interval
        self.state = AdminState()
        self._lobby: Optional[asyncio.Task] = None

    # ----------------------------
    # Lobby
    # ----------------------------
    async def list_rooms(self) -> List[RoomSummary]:
        try:
            self.state.rooms = await self.repo.list_room_summaries()
        except (OSError, RedisError):
            logger.warning("room registry unavailable", exc_info=True)
            self.state.rooms = []
        return self.state.rooms

    def follow_rooms(self, on_change: Optional[Callable[[List[RoomSummary]], None]] = None) -> None:
        """
        Keep `state.rooms` live while the lobby is open: the registry is
        re-read every `poll_interval` and `on_change` fires when it differs.
        """
        self.stop_following_rooms()
        self._lobby = asyncio.create_task(self._follow_rooms(on_change))

    def stop_following_rooms(self) -> None:
        if self._lobby is not None:
            self._lobby.cancel()
            self._lobby = None

    @property
    def following_rooms(self) -> bool:
        return self._lobby is not None and not self._lobby.done()

    async def _follow_rooms(self, on_change: Optional[Callable[[List[RoomSummary]], None]]) -> None:
        last: Optional[List[RoomSummary]] = None
        while True:
            rooms = await self.list_rooms()
            if rooms != last:
                last = list(rooms)
                if on_change is not None:
                    try:
                        on_change(last)
                    except Exception:
                        logger.exception("lobby callback %r failed", on_change)
            await asyncio.sleep(self.poll_interval)

    async def create_room(
        self,
        org_name: str,
        total_teams: int,
        duration_minutes: Optional[int] = None,
    ) -> Optional[RoomStore]:
        org_name = (org_name or "").strip()
        if not org_name or total_teams < 1:
            self.state.signal = "denied"
            return None
        room = await create_room(
            self.repo,
            org_name=org_name,
            total_teams=total_teams,
            duration_minutes=duration_minutes or self.default_duration_min,
            now=self.clock(),
        )
        await self.enter(room.room_code)
        return room

    async def enter(self, room_code: str) -> bool:
        code = room_code.strip().upper()
        try:
            snap = await self.ctx.transport.fetch(code)
        except TransportUnavailable:
            logger.warning("room %s unreachable", code, exc_info=True)
            self.state.signal = "offline"
            return False
        if snap.room is None:
            self.state.signal = "not_found"
            return False

        self.stop_following_rooms()
        s = self.state
        s.view = "DASHBOARD"
        s.room = snap.room
        s.teams = snap.teams
        s.signal = ""
        self.ctx.subscribe(code, self._on_room, self._on_teams)
        return True

    async def delete_room(self, room_code: str) -> None:
        code = room_code.strip().upper()
        await delete_room_cmd(self.repo, code)
        await self.ctx.transport.announce_deleted(code)
        if self.state.room is not None and self.state.room.room_code == code:
            self.back_to_lobby()
        await self.list_rooms()

    def back_to_lobby(self) -> None:
        self.ctx.release()
        self.state.view = "LOBBY"
        self.state.room = None
        self.state.teams = {}

    # ----------------------------
    # Dashboard
    # ----------------------------
    async def start_game(self) -> Optional[RoomStore]:
        room = self.state.room
        if room is None:
            return None
        started = start_room(room, self.clock())
        if started is not room:
            self.state.room = started
            await self.ctx.transport.publish(started.room_code, started)
        return started

    async def end_game(self) -> Optional[RoomStore]:
        room = self.state.room
        if room is None:
            return None
        ended = end_room(room)
        if ended is not room:
            self.state.room = ended
            await self.ctx.transport.publish(ended.room_code, ended)
            await self._mark_summary_ended(ended.room_code)
        return ended

    async def _mark_summary_ended(self, room_code: str) -> None:
        for summary in await self.list_rooms():
            if summary.room_code == room_code:
                await self.repo.put_room_summary(summary.model_copy(update={"is_ended": True}))
                return

    def remaining(self) -> Optional[int]:
        room = self.state.room
        if room is None or not room.is_started or not room.start_time:
            return None
        return remaining_ms(room, self.clock())

    def clock_text(self) -> str:
        left = self.remaining()
        return format_clock(left) if left is not None else "--:--"

    def urgent(self) -> bool:
        return is_urgent(self.remaining())

    def member_count(self) -> int:
        return sum(len(t.members) for t in self.state.teams.values())

    def grid(self) -> List[TeamStatus]:
        return [
            TeamStatus(
                team_id=t.team_id,
                name=t.name,
                members=list(t.members),
                completed=[loc for loc in LOCATION_ORDER if loc in t.completed_locations],
                unlocked=list(t.unlocked_locations),
                hint_count=t.hint_count,
                finished=t.finish_time is not None,
            )
            for t in sorted(self.state.teams.values(), key=lambda t: t.team_id)
        ]

    def leaderboard(self) -> List[LeaderboardRow]:
        if self.state.room is None:
            return []
        return leaderboard(self.state.teams, self.state.room, self.per_hint_ms)

    async def close(self) -> None:
        task, self._lobby = self._lobby, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self.ctx.close()

    # ----------------------------
    # Sync
    # ----------------------------
    def _on_room(self, room: Optional[RoomStore]) -> None:
        if room is None:
            if self.state.view == "DASHBOARD":
                self.state.signal = "room_gone"
                self.back_to_lobby()
            return
        self.state.room = room

    def _on_teams(self, teams: Dict[int, TeamStore]) -> None:
        if self.state.view == "DASHBOARD":
            self.state.teams = dict(teams)
