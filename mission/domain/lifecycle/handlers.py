# mission/domain/lifecycle/handlers.py
from __future__ import annotations

import logging
import random
import string
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from mission.domain.progress.rules import (
    ROOM_CODE_LEN,
    end_room,
    join_team,
    new_room,
    new_teams,
    reconcile_team_update,
    start_room,
)
from mission.store.base import StateStore
from mission.store.models import RoomStore, RoomSummary, TeamStore, teams_to_wire
from mission.transport.protocols import (
    InJoinRequest,
    InSnapshot,
    InUpdateTeam,
    OutError,
    OutgoingEvent,
    OutSyncFull,
)
from mission.util.timeutil import now_ms

logger = logging.getLogger(__name__)

# Returns: (to_sender, to_room)
Result = Tuple[List[OutgoingEvent], List[OutgoingEvent]]

_CODE_ATTEMPTS = 5


def gen_room_code(n: int = ROOM_CODE_LEN) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(random.choice(alphabet) for _ in range(n))


# -------------------------
# Store commands (shared by the ws relay, the admin router and the sync layer)
# -------------------------

async def create_room(
    repo: StateStore,
    *,
    org_name: str,
    total_teams: int,
    duration_minutes: int = 60,
    now: Optional[int] = None,
) -> RoomStore:
    """
    Seed a room with `total_teams` fresh teams and register it for discovery.
    The code is regenerated while it collides with a live room.
    """
    code = gen_room_code()
    for _ in range(_CODE_ATTEMPTS):
        if not await repo.room_exists(code):
            break
        code = gen_room_code()

    room = new_room(code, org_name, total_teams, duration_minutes)
    await repo.put_room(room)
    await repo.put_teams(code, new_teams(total_teams))
    await repo.put_room_summary(
        RoomSummary(
            room_code=code,
            org_name=org_name,
            created_at=now if now is not None else now_ms(),
            is_ended=False,
        )
    )
    logger.info("room created code=%s org=%s teams=%d", code, org_name, total_teams)
    return room


async def start_room_cmd(repo: StateStore, room_code: str, now: Optional[int] = None) -> Optional[RoomStore]:
    room = await repo.get_room(room_code)
    if room is None:
        return None
    started = start_room(room, now)
    if started is not room:
        await repo.put_room(started)
    return started


async def end_room_cmd(repo: StateStore, room_code: str) -> Optional[RoomStore]:
    room = await repo.get_room(room_code)
    if room is None:
        return None
    ended = end_room(room)
    if ended is not room:
        await repo.put_room(ended)
        for summary in await repo.list_room_summaries():
            if summary.room_code == room_code:
                await repo.put_room_summary(summary.model_copy(update={"is_ended": True}))
                break
    return ended


async def delete_room_cmd(repo: StateStore, room_code: str) -> None:
    await repo.delete_room(room_code)
    logger.info("room deleted code=%s", room_code)


async def apply_join(repo: StateStore, room_code: str, team_id: int, name: str) -> Optional[TeamStore]:
    """Append `name` to the team's members; None when the team does not exist."""
    return await repo.update_team(
        room_code,
        team_id,
        lambda team: {"members": join_team(team, name).members},
    )


async def apply_team_update(
    repo: StateStore,
    room_code: str,
    team_id: int,
    updates: Dict[str, Any],
) -> Optional[TeamStore]:
    return await repo.update_team(
        room_code,
        team_id,
        lambda team: reconcile_team_update(team, updates),
    )


async def build_snapshot(repo: StateStore, room_code: str) -> OutSyncFull:
    """
    Build a full snapshot from the store.
    Keep it store-driven, not rule-driven.
    """
    room = await repo.get_room(room_code)
    teams = await repo.get_teams(room_code) if room is not None else {}
    return OutSyncFull(
        room=room.wire() if room is not None else None,
        teams=teams_to_wire(teams),
    )


# -------------------------
# Relay handlers
# -------------------------

def _room_not_found(room_code: str) -> OutError:
    return OutError(code="ROOM_NOT_FOUND", message=f"Room {room_code} not found")


async def handle_join_request(*, app, room_code: str, pid: Optional[str], msg: InJoinRequest) -> Result:
    """
    Join:
    - room must exist
    - add the name to the team (rejoining under the same name is fine)
    - echo the full state to everyone, the sender included
    """
    repo = app.state.repo
    if not await repo.room_exists(room_code):
        return [_room_not_found(room_code)], []

    team = await apply_join(repo, room_code, msg.payload.team_id, msg.payload.name)
    if team is None:
        return [OutError(code="TEAM_NOT_FOUND", message=f"Team {msg.payload.team_id} not found")], []

    await repo.refresh_room_ttl(room_code)
    return [], [await build_snapshot(repo, room_code)]


async def handle_update_team(*, app, room_code: str, pid: Optional[str], msg: InUpdateTeam) -> Result:
    repo = app.state.repo
    if not await repo.room_exists(room_code):
        return [_room_not_found(room_code)], []

    try:
        team = await apply_team_update(repo, room_code, msg.payload.team_id, msg.payload.updates)
    except ValidationError as e:
        logger.info("rejected update for team %s in %s: %s", msg.payload.team_id, room_code, e)
        return [OutError(code="BAD_MESSAGE", message=str(e))], []
    if team is None:
        return [OutError(code="TEAM_NOT_FOUND", message=f"Team {msg.payload.team_id} not found")], []

    await repo.refresh_room_ttl(room_code)
    return [], [await build_snapshot(repo, room_code)]


async def handle_snapshot(*, app, room_code: str, pid: Optional[str], msg: InSnapshot) -> Result:
    repo = app.state.repo
    snap = await build_snapshot(repo, room_code)
    if snap.room is None:
        return [_room_not_found(room_code)], []
    return [snap], []
