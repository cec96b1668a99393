# mission/domain/progress/rules.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from mission.domain.common.types import LocationId
from mission.domain.puzzles.catalog import FIRST_LOCATION
from mission.store.models import TEAM_UPDATE_FIELDS, RoomStore, TeamStore, team_field_name
from mission.util.timeutil import now_ms

# Progress Constants
MAX_HINTS = 3
ROOM_CODE_LEN = 6


def default_team_name(team_id: int) -> str:
    return f"{team_id}조"


def new_room(
    room_code: str,
    org_name: str,
    total_teams: int,
    duration_minutes: int = 60,
) -> RoomStore:
    return RoomStore(
        room_code=room_code,
        org_name=org_name,
        total_teams=total_teams,
        is_started=False,
        start_time=None,
        is_ended=False,
        duration_minutes=duration_minutes,
    )


def new_team(team_id: int) -> TeamStore:
    """Every team starts fully populated with the first location already unlocked."""
    return TeamStore(
        team_id=team_id,
        name=default_team_name(team_id),
        members=[],
        current_location_id=None,
        unlocked_locations=[FIRST_LOCATION],
        completed_locations=[],
        solved_sub_puzzles=[],
        completion_times={},
        finish_time=None,
        hint_count=0,
        is_dead=False,
    )


def new_teams(total_teams: int) -> Dict[int, TeamStore]:
    return {i: new_team(i) for i in range(1, total_teams + 1)}


# ----------------------------
# Room transitions
# ----------------------------
def start_room(room: RoomStore, now: Optional[int] = None) -> RoomStore:
    """No-op on an already started room so startTime is written exactly once."""
    if room.is_started:
        return room
    ts = now if now is not None else now_ms()
    return room.model_copy(update={"is_started": True, "start_time": ts})


def end_room(room: RoomStore) -> RoomStore:
    if room.is_ended:
        return room
    return room.model_copy(update={"is_ended": True})


# ----------------------------
# Team transitions
# ----------------------------
def join_team(team: TeamStore, name: str) -> TeamStore:
    if name in team.members:
        return team
    return team.model_copy(update={"members": [*team.members, name]})


def solve_sub_puzzle(team: TeamStore, sub_id: str) -> TeamStore:
    if sub_id in team.solved_sub_puzzles:
        return team
    return team.model_copy(update={"solved_sub_puzzles": [*team.solved_sub_puzzles, sub_id]})


def complete_location(
    team: TeamStore,
    loc: LocationId,
    next_loc: Optional[LocationId],
    now: Optional[int] = None,
) -> Tuple[TeamStore, bool]:
    """
    Mark `loc` completed and chain to `next_loc`.
    Returns (team, finished). finished is True only on the call that completes
    the terminal location (next_loc is None).

    A location that is locked or already completed leaves the team untouched
    and reports finished=False, so racing devices cannot double-stamp a time,
    double-unlock or finish twice.
    """
    if loc not in team.unlocked_locations or loc in team.completed_locations:
        return team, False

    ts = now if now is not None else now_ms()
    unlocked = list(team.unlocked_locations)
    update: Dict[str, Any] = {
        "completed_locations": [*team.completed_locations, loc],
        "completion_times": {**team.completion_times, loc: ts},
        "current_location_id": None,
    }

    finished = False
    if next_loc:
        if next_loc not in unlocked:
            unlocked.append(next_loc)
    elif team.finish_time is None:
        update["finish_time"] = ts
        finished = True

    update["unlocked_locations"] = unlocked
    return team.model_copy(update=update), finished


def use_hint(team: TeamStore) -> TeamStore:
    """Not idempotent: call once per user-initiated hint request. The cap lives in the controller."""
    return team.model_copy(update={"hint_count": team.hint_count + 1})


def can_use_hint(team: TeamStore, max_hints: int = MAX_HINTS) -> bool:
    return team.hint_count < max_hints


def hints_left(team: TeamStore, max_hints: int = MAX_HINTS) -> int:
    return max(0, max_hints - team.hint_count)


# ----------------------------
# Merging writes from several devices
# ----------------------------
def _union(base: List[str], extra: List[str]) -> List[str]:
    out = list(base)
    for x in extra:
        if x not in out:
            out.append(x)
    return out


def team_diff(before: TeamStore, after: TeamStore) -> Dict[str, Any]:
    """Wire-named fields that changed; the payload of an UPDATE_TEAM action."""
    a = before.wire()
    b = after.wire()
    return {k: v for k, v in b.items() if k != "teamId" and a.get(k) != v}


def reconcile_team_update(team: TeamStore, updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn a client's partial update into the fields to store on the host.

    Whole-field replace is kept for plain fields, but monotonic fields are
    merged with what is already stored: lists are unioned (stored order first),
    completion times keep the first stamp per location, finishTime is write-once
    and hintCount never goes down. A stale optimistic write from one device can
    therefore not erase progress another device already confirmed.
    """
    incoming = TeamStore.model_validate({**team.wire(), **updates, "teamId": team.team_id})
    out: Dict[str, Any] = {}
    for key in updates:
        if key not in TEAM_UPDATE_FIELDS:
            continue
        if key == "members":
            out[key] = _union(team.members, incoming.members)
        elif key == "unlockedLocations":
            out[key] = _union(team.unlocked_locations, incoming.unlocked_locations)
        elif key == "completedLocations":
            out[key] = _union(team.completed_locations, incoming.completed_locations)
        elif key == "solvedSubPuzzles":
            out[key] = _union(team.solved_sub_puzzles, incoming.solved_sub_puzzles)
        elif key == "completionTimes":
            out[key] = {**incoming.completion_times, **team.completion_times}
        elif key == "finishTime":
            out[key] = team.finish_time if team.finish_time is not None else incoming.finish_time
        elif key == "hintCount":
            out[key] = max(team.hint_count, incoming.hint_count)
        else:
            out[key] = getattr(incoming, team_field_name(key))
    # keep completed ⊆ unlocked when a completion arrives without its unlock
    if "completedLocations" in out:
        unlocked = out.get("unlockedLocations", team.unlocked_locations)
        out["unlockedLocations"] = _union(unlocked, out["completedLocations"])
    return out


def apply_partial(team: TeamStore, updates: Dict[str, Any]) -> TeamStore:
    """{...team, ...updates}: shallow, field-level, whole-field replace."""
    return TeamStore.model_validate({**team.wire(), **updates, "teamId": team.team_id})


def check_team_invariants(team: TeamStore) -> List[str]:
    """Return a list of violated invariants (empty when consistent)."""
    problems: List[str] = []
    if not set(team.completed_locations) <= set(team.unlocked_locations):
        problems.append("completed not subset of unlocked")
    if set(team.completion_times) != set(team.completed_locations):
        problems.append("completionTimes keys differ from completed")
    if len(set(team.members)) != len(team.members):
        problems.append("duplicate members")
    if team.hint_count < 0:
        problems.append("negative hintCount")
    return problems
