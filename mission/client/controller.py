# mission/client/controller.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from mission.client.context import ClientContext
from mission.client.hints import HintProvider, StaticHintProvider, ask_hint
from mission.client.session import SessionStore, parse_join_link, restore_session
from mission.client.timer import MissionTimer
from mission.domain.common.answers import match_answer
from mission.domain.common.fsm import can_fail, can_succeed, can_transition_to
from mission.domain.common.types import ADMIN_STAGES, IN_GAME_STAGES, LocationId, Signal, Stage
from mission.domain.progress.autoadvance import all_sub_puzzles_solved, next_advance
from mission.domain.progress.rules import (
    MAX_HINTS,
    ROOM_CODE_LEN,
    can_use_hint,
    complete_location,
    hints_left,
    join_team,
    solve_sub_puzzle,
    team_diff,
    use_hint,
)
from mission.domain.puzzles.catalog import FIRST_LOCATION, PuzzleData, get_puzzle
from mission.store.models import ClientSession, RoomStore, TeamStore
from mission.sync.base import Transport, TransportUnavailable
from mission.util.timeutil import now_ms

logger = logging.getLogger(__name__)


@dataclass
class GameState:
    stage: Stage = "LOGIN_SELECT"
    my_team_id: Optional[int] = None
    my_name: Optional[str] = None
    current_location_id: Optional[LocationId] = None
    room: Optional[RoomStore] = None
    teams: Dict[int, TeamStore] = field(default_factory=dict)
    # all sub-puzzles of the current location solved; waiting for the final answer
    final_stage_mode: bool = False
    signal: Signal = ""
    # code pre-filled on the join screen (from a join link)
    room_code_input: str = ""

    @property
    def my_team(self) -> Optional[TeamStore]:
        if self.my_team_id is None:
            return None
        return self.teams.get(self.my_team_id)

    @property
    def puzzle(self) -> Optional[PuzzleData]:
        return get_puzzle(self.current_location_id)


class GameController:
    """
    Per-client state machine and the only place that mutates progress.

    Every mutation is applied to the local state first, then written through
    the transport in the background. Snapshots coming back from the transport
    replace local state (last write wins) and may move the stage on their
    own: game start, a teammate finishing the location, the team finishing.
    """

    def __init__(
        self,
        transport: Transport,
        session: Optional[SessionStore] = None,
        hints: Optional[HintProvider] = None,
        clock: Callable[[], int] = now_ms,
        max_hints: int = MAX_HINTS,
        on_change: Optional[Callable[[GameState], None]] = None,
    ) -> None:
        self.ctx = ClientContext(transport)
        self.session = session
        self.hints: HintProvider = hints or StaticHintProvider()
        self.clock = clock
        self.max_hints = max_hints
        self.timer = MissionTimer(clock)
        self.on_change = on_change
        self.state = GameState()

    # ----------------------------
    # Helpers
    # ----------------------------
    def _emit(self) -> None:
        if self.on_change is not None:
            try:
                self.on_change(self.state)
            except Exception:
                logger.exception("view callback failed")

    def _deny(self, signal: Signal = "denied") -> bool:
        self.state.signal = signal
        self._emit()
        return False

    def clear_signal(self) -> None:
        self.state.signal = ""

    def _goto(self, stage: Stage) -> bool:
        if not can_transition_to(self.state.stage, stage):
            return self._deny()
        self.state.stage = stage
        self.state.signal = ""
        self._emit()
        return True

    def _persist(self) -> None:
        s = self.state
        if self.session is None or s.room is None:
            return
        try:
            if s.my_team_id and s.my_name:
                self.session.save(
                    ClientSession(
                        room_code=s.room.room_code,
                        team_id=s.my_team_id,
                        name=s.my_name,
                        current_location_id=s.current_location_id,
                        stage=s.stage,
                    )
                )
            self.session.save_snapshot(s.room, s.teams)
        except OSError:
            logger.warning("session write failed", exc_info=True)

    def _send_team_update(self, before: TeamStore, after: TeamStore) -> None:
        updates = team_diff(before, after)
        if not updates:
            return
        self.ctx.spawn(
            self.ctx.transport.send_action("UPDATE_TEAM", {"teamId": after.team_id, "updates": updates}),
            "UPDATE_TEAM",
        )

    def _set_team(self, team: TeamStore) -> None:
        self.state.teams = {**self.state.teams, team.team_id: team}

    def _final_stage_pending(self, team: Optional[TeamStore], loc: Optional[LocationId]) -> bool:
        puzzle = get_puzzle(loc)
        if team is None or puzzle is None or puzzle.final_stage is None:
            return False
        if loc in team.completed_locations:
            return False
        return all_sub_puzzles_solved(puzzle, team.solved_sub_puzzles)

    def _reset(self, signal: Signal = "") -> None:
        self.ctx.release()
        self.timer.reset()
        self.state = GameState(signal=signal)

    # ----------------------------
    # Landing
    # ----------------------------
    def select_user(self) -> bool:
        return self._goto("USER_JOIN")

    def select_admin(self) -> bool:
        return self._goto("ADMIN_LOGIN")

    def admin_login(self, authorized: bool) -> bool:
        """Authentication happens elsewhere; this only honours its verdict."""
        if not authorized:
            return self._deny()
        return self._goto("ADMIN_DASHBOARD")

    def back(self) -> bool:
        return self._goto("LOGIN_SELECT")

    # ----------------------------
    # Joining
    # ----------------------------
    async def connect(self, room_code: str) -> bool:
        """
        Join handshake: the one call a client waits on. Loads the room and
        subscribes to it; sets `not_found` or `offline` when that fails.
        """
        code = (room_code or "").strip().upper()
        if len(code) < ROOM_CODE_LEN:
            return self._deny()
        try:
            snap = await self.ctx.transport.fetch(code)
        except TransportUnavailable:
            logger.info("room %s unreachable", code, exc_info=True)
            return self._deny("offline")
        if snap.room is None:
            return self._deny("not_found")

        self.state.room = snap.room
        self.state.teams = snap.teams
        self.state.signal = ""
        self.ctx.subscribe(code, self._on_room, self._on_teams)
        self._emit()
        return True

    async def open_link(self, url: str) -> bool:
        """
        First load through a `?room=CODE` join link: fills in the code and
        connects the same way a typed code does. Links without a room do nothing.
        """
        code = parse_join_link(url)
        if code is None:
            return False
        if self.state.stage != "USER_JOIN" and not self.select_user():
            return False
        self.state.room_code_input = code
        return await self.connect(code)

    def join(self, name: str, team_id: int) -> bool:
        s = self.state
        name = (name or "").strip()
        if s.room is None or not name:
            return self._deny()
        if not (1 <= team_id <= s.room.total_teams) or team_id not in s.teams:
            return self._deny()
        if not can_transition_to(s.stage, "WAITING_ROOM"):
            return self._deny()

        self._set_team(join_team(s.teams[team_id], name))
        s.my_name = name
        s.my_team_id = team_id
        s.stage = "WAITING_ROOM"
        s.current_location_id = None
        s.signal = ""
        self.ctx.spawn(
            self.ctx.transport.send_action("JOIN_REQUEST", {"teamId": team_id, "name": name}),
            "JOIN_REQUEST",
        )
        self._reconcile()
        self._persist()
        self._emit()
        return True

    # ----------------------------
    # Navigation
    # ----------------------------
    def open_intro(self) -> bool:
        return self._goto("INTRO")

    def start_mission(self) -> bool:
        """INTRO is only a way into the map."""
        if not self._goto("MAP"):
            return False
        self._persist()
        return True

    def select_location(self, loc: LocationId) -> bool:
        team = self.state.my_team
        if team is None or loc not in team.unlocked_locations or get_puzzle(loc) is None:
            return self._deny()
        if not can_transition_to(self.state.stage, "PUZZLE_VIEW"):
            return self._deny()
        self.state.stage = "PUZZLE_VIEW"
        self.state.current_location_id = loc
        self.state.final_stage_mode = self._final_stage_pending(team, loc)
        self.state.signal = ""
        self._persist()
        self._emit()
        return True

    def back_to_map(self) -> bool:
        if not can_transition_to(self.state.stage, "MAP"):
            return self._deny()
        self.state.stage = "MAP"
        self.state.current_location_id = None
        self.state.final_stage_mode = False
        self._persist()
        self._emit()
        return True

    # ----------------------------
    # Answers
    # ----------------------------
    def submit_answer(self, text: str) -> bool:
        """Whole-location answer, for locations without sub-puzzles."""
        puzzle = self.state.puzzle
        if self.state.stage != "PUZZLE_VIEW" or puzzle is None or puzzle.sub_puzzles:
            return self._deny()
        if not match_answer(text, puzzle.answer):
            return self._deny()
        return self._complete_current()

    def submit_sub_puzzle(self, sub_id: str, text: str) -> bool:
        puzzle = self.state.puzzle
        team = self.state.my_team
        if self.state.stage != "PUZZLE_VIEW" or puzzle is None or team is None:
            return self._deny()
        sub = puzzle.sub_puzzle(sub_id)
        if sub is None or not match_answer(text, sub.answer):
            return self._deny()

        after = solve_sub_puzzle(team, sub_id)
        if after is not team:
            self._set_team(after)
            self._send_team_update(team, after)
        self.state.signal = ""

        advance = next_advance(puzzle, after.solved_sub_puzzles)
        if advance == "FINAL_STAGE":
            self.state.final_stage_mode = True
        elif advance == "COMPLETE":
            return self._complete_current()
        self._persist()
        self._emit()
        return True

    def submit_final_stage(self, text: str) -> bool:
        puzzle = self.state.puzzle
        if not self.state.final_stage_mode or puzzle is None or puzzle.final_stage is None:
            return self._deny()
        if not match_answer(text, puzzle.final_stage.answer):
            return self._deny()
        return self._complete_current()

    def _complete_current(self) -> bool:
        s = self.state
        team = s.my_team
        puzzle = s.puzzle
        if team is None or puzzle is None:
            return self._deny()

        after, finished = complete_location(team, puzzle.id, puzzle.next_location_id, now=self.clock())
        if after is not team:
            self._set_team(after)
            self._send_team_update(team, after)

        s.stage = "SUCCESS" if finished else "MAP"
        s.current_location_id = None
        s.final_stage_mode = False
        s.signal = ""
        self._persist()
        self._emit()
        return True

    # ----------------------------
    # Hints
    # ----------------------------
    def hints_left(self) -> int:
        team = self.state.my_team
        return hints_left(team, self.max_hints) if team is not None else 0

    async def request_hint(self, query: str = "") -> Optional[str]:
        """
        Spend one hint and ask the provider. Refused at the cap; the spend is
        counted exactly once per call, whatever the provider does.
        """
        team = self.state.my_team
        puzzle = self.state.puzzle
        if team is None or puzzle is None:
            self._deny()
            return None
        if not can_use_hint(team, self.max_hints):
            self._deny("hint_limit")
            return None

        after = use_hint(team)
        self._set_team(after)
        self._send_team_update(team, after)
        self._persist()
        self._emit()
        return await ask_hint(self.hints, puzzle.hint_context, query)

    # ----------------------------
    # Timer
    # ----------------------------
    def tick(self) -> Optional[int]:
        """Drive from a ~1s loop; moves to FAILURE once the room's time is up."""
        room = self.state.room
        if self.state.my_team_id is not None and self.timer.check(room) and can_fail(self.state.stage):
            self.state.stage = "FAILURE"
            self.state.current_location_id = None
            self.state.final_stage_mode = False
            self._persist()
            self._emit()
        return self.timer.remaining(room)

    def clock_text(self) -> str:
        return self.timer.display(self.state.room)

    # ----------------------------
    # Session
    # ----------------------------
    async def restore(self) -> bool:
        """
        Resume a saved session. The room is looked up fresh when possible,
        otherwise the cached snapshot stands in and the subscription keeps
        retrying in the background.
        """
        if self.session is None:
            return False
        saved = self.session.load()
        if saved is None or not saved.room_code:
            return False

        room, teams = self.session.load_snapshot()
        try:
            snap = await self.ctx.transport.fetch(saved.room_code)
            room, teams = snap.room, snap.teams
        except TransportUnavailable:
            logger.info("reconnect to %s failed; using cached snapshot", saved.room_code, exc_info=True)

        fixed = restore_session(saved, room)
        if fixed is None:
            self.session.clear()
            return False

        s = self.state
        s.room = room
        s.teams = teams
        s.my_team_id = fixed.team_id
        s.my_name = fixed.name
        s.stage = fixed.stage  # type: ignore[assignment]
        s.current_location_id = fixed.current_location_id
        s.final_stage_mode = self._final_stage_pending(s.my_team, s.current_location_id)
        self.ctx.subscribe(saved.room_code, self._on_room, self._on_teams)
        self._reconcile()
        self._persist()
        self._emit()
        return True

    async def refresh(self) -> bool:
        """Pull one full snapshot now (after a reconnect nothing is replayed)."""
        code = self.state.room.room_code if self.state.room else None
        if code is None:
            return False
        try:
            snap = await self.ctx.transport.fetch(code)
        except TransportUnavailable:
            return False
        self._on_room(snap.room)
        if self.state.room is not None:
            self._on_teams(snap.teams)
        return True

    def return_to_menu(self) -> None:
        if self.session is not None:
            self.session.clear()
        self._reset()
        self._emit()

    async def close(self) -> None:
        await self.ctx.close()

    # ----------------------------
    # Sync
    # ----------------------------
    def _on_room(self, room: Optional[RoomStore]) -> None:
        s = self.state
        if room is None:
            if s.room is not None and s.stage not in ADMIN_STAGES:
                logger.info("room %s is gone", s.room.room_code)
                if self.session is not None:
                    self.session.clear()
                self._reset(signal="room_gone")
                self._emit()
            return
        s.room = room
        self._reconcile()
        self._persist()
        self._emit()

    def _on_teams(self, teams: Dict[int, TeamStore]) -> None:
        if self.state.room is None:
            return
        self.state.teams = dict(teams)
        self._reconcile()
        self._persist()
        self._emit()

    def _reconcile(self) -> None:
        """Stage moves driven by confirmed state rather than by this user."""
        s = self.state
        room = s.room
        if room is None or not room.is_started:
            return

        if s.stage == "WAITING_ROOM":
            s.stage = "PUZZLE_VIEW"
            s.current_location_id = FIRST_LOCATION

        team = s.my_team
        if team is None:
            return

        if team.finish_time is not None and can_succeed(s.stage) and s.stage in IN_GAME_STAGES:
            s.stage = "SUCCESS"
            s.current_location_id = None
            s.final_stage_mode = False
            return

        loc = s.current_location_id
        if s.stage == "PUZZLE_VIEW" and loc and loc in team.completed_locations:
            nxt = next((x for x in team.unlocked_locations if x not in team.completed_locations), None)
            if nxt is not None:
                s.current_location_id = nxt
            else:
                s.stage = "MAP"
                s.current_location_id = None

        s.final_stage_mode = s.stage == "PUZZLE_VIEW" and self._final_stage_pending(team, s.current_location_id)
