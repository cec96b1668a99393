from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import Field

from mission.domain.lifecycle.handlers import (
    build_snapshot,
    create_room,
    delete_room_cmd,
    end_room_cmd,
    start_room_cmd,
)
from mission.domain.scoring import leaderboard
from mission.store.models import WireModel
from mission.util.timeutil import minutes_to_ms

router = APIRouter(prefix="/admin", tags=["admin"])


class CreateRoomBody(WireModel):
    org_name: str = Field(min_length=1, max_length=60)
    total_teams: int = Field(ge=1, le=50)
    duration_minutes: Optional[int] = Field(default=None, ge=1)


@router.post("/rooms", status_code=201)
async def create_room_route(body: CreateRoomBody, request: Request):
    """
    Create a room, seed its teams and register it for discovery.
    """
    repo = request.app.state.repo
    settings = request.app.state.settings
    room = await create_room(
        repo,
        org_name=body.org_name,
        total_teams=body.total_teams,
        duration_minutes=body.duration_minutes or settings.DEFAULT_DURATION_MIN,
    )
    return {"ok": True, "room": room.wire()}


@router.get("/rooms/{room_code}")
async def get_room_route(room_code: str, request: Request):
    snap = await build_snapshot(request.app.state.repo, room_code.upper())
    if snap.room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return {"room": snap.room, "teams": snap.teams}


@router.post("/rooms/{room_code}/start")
async def start_room_route(room_code: str, request: Request):
    code = room_code.upper()
    repo = request.app.state.repo
    room = await start_room_cmd(repo, code)
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    await request.app.state.host.push(code)
    return {"ok": True, "room": room.wire()}


@router.post("/rooms/{room_code}/end")
async def end_room_route(room_code: str, request: Request):
    code = room_code.upper()
    repo = request.app.state.repo
    room = await end_room_cmd(repo, code)
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    await request.app.state.host.push(code)
    return {"ok": True, "room": room.wire()}


@router.delete("/rooms/{room_code}")
async def delete_room_route(room_code: str, request: Request):
    """
    Force close a room. Deletes room, teams and registry entry, then closes peer sockets.
    """
    code = room_code.upper()
    repo = request.app.state.repo
    if not await repo.room_exists(code):
        raise HTTPException(status_code=404, detail="Room not found")

    await delete_room_cmd(repo, code)
    await request.app.state.host.announce_deleted(code)
    return {"ok": True, "room_code": code}


@router.get("/rooms/{room_code}/leaderboard")
async def leaderboard_route(room_code: str, request: Request):
    code = room_code.upper()
    repo = request.app.state.repo
    settings = request.app.state.settings
    room = await repo.get_room(code)
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")

    rows = leaderboard(await repo.get_teams(code), room, minutes_to_ms(settings.HINT_PENALTY_MIN))
    return {"room_code": code, "rows": [asdict(r) for r in rows]}
