# mission/domain/scoring/ranking.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from mission.domain.common.types import LocationId
from mission.domain.puzzles.catalog import LOCATION_ORDER
from mission.store.models import RoomStore, TeamStore
from mission.util.timeutil import minutes_to_ms

HINT_PENALTY_MIN = 5
PENALTY_PER_HINT_MS = minutes_to_ms(HINT_PENALTY_MIN)


@dataclass
class StageTime:
    location_id: LocationId
    completed_at: int
    duration_ms: int


@dataclass
class LeaderboardRow:
    rank: int
    team_id: int
    name: str
    members: List[str]
    finished: bool
    completed: int
    hint_count: int
    raw_time_ms: Optional[int]
    penalty_ms: int
    final_time_ms: Optional[int]
    stages: List[StageTime] = field(default_factory=list)


def penalty_ms(team: TeamStore, per_hint_ms: int = PENALTY_PER_HINT_MS) -> int:
    return team.hint_count * per_hint_ms


def raw_time_ms(team: TeamStore, room: RoomStore) -> Optional[int]:
    if team.finish_time is None or not room.start_time:
        return None
    return team.finish_time - room.start_time


def final_time_ms(team: TeamStore, room: RoomStore, per_hint_ms: int = PENALTY_PER_HINT_MS) -> Optional[int]:
    """(finishTime - startTime) + hintCount * penalty; None while unfinished."""
    raw = raw_time_ms(team, room)
    if raw is None:
        return None
    return raw + penalty_ms(team, per_hint_ms)


def rank_teams(
    teams: Iterable[TeamStore],
    room: RoomStore,
    per_hint_ms: int = PENALTY_PER_HINT_MS,
) -> List[TeamStore]:
    """
    Finished teams first by final time ascending; unfinished teams after them,
    more completed locations first. Equal keys keep team-id order.
    """
    ordered = sorted(teams, key=lambda t: t.team_id)

    def key(t: TeamStore):
        ft = final_time_ms(t, room, per_hint_ms)
        if ft is not None:
            return (0, ft)
        return (1, -len(t.completed_locations))

    return sorted(ordered, key=key)


def stage_breakdown(
    team: TeamStore,
    room: RoomStore,
    order: Iterable[LocationId] = LOCATION_ORDER,
) -> List[StageTime]:
    """Duration of each completed stage, measured from the previous completion (or the start)."""
    out: List[StageTime] = []
    prev = room.start_time or 0
    for loc in order:
        ts = team.completion_times.get(loc)
        if ts is None or loc not in team.completed_locations:
            continue
        out.append(StageTime(location_id=loc, completed_at=ts, duration_ms=max(0, ts - prev)))
        prev = ts
    return out


def leaderboard(
    teams: Dict[int, TeamStore],
    room: RoomStore,
    per_hint_ms: int = PENALTY_PER_HINT_MS,
) -> List[LeaderboardRow]:
    rows: List[LeaderboardRow] = []
    for i, t in enumerate(rank_teams(teams.values(), room, per_hint_ms), start=1):
        rows.append(
            LeaderboardRow(
                rank=i,
                team_id=t.team_id,
                name=t.name,
                members=list(t.members),
                finished=t.finish_time is not None,
                completed=len(t.completed_locations),
                hint_count=t.hint_count,
                raw_time_ms=raw_time_ms(t, room),
                penalty_ms=penalty_ms(t, per_hint_ms),
                final_time_ms=final_time_ms(t, room, per_hint_ms),
                stages=stage_breakdown(t, room),
            )
        )
    return rows
