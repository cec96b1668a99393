# mission/transport/ws.py
from __future__ import annotations

import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from mission.domain.lifecycle.handlers import build_snapshot
from mission.settings import get_settings
from mission.store.base import StateStore
from mission.transport.dispatcher import dispatch_message
from mission.transport.protocols import OutError, OutRoomClosed
from mission.transport.ws_manager import WSManager

logger = logging.getLogger(__name__)

router = APIRouter()


def host_identity(room_code: str) -> str:
    """Rendezvous identity of a room's host, derived only from the room code."""
    return f"imf-mission-{room_code.upper()}"


async def broadcast_sync(repo: StateStore, wsman: WSManager, room_code: str) -> int:
    """Push the current full state to every peer of the room."""
    snap = await build_snapshot(repo, room_code)
    return await wsman.broadcast(room_code, snap.model_dump())


async def close_room_peers(wsman: WSManager, room_code: str) -> None:
    await wsman.broadcast(room_code, OutRoomClosed(room_code=room_code).model_dump())
    await wsman.close_room(room_code)


async def _check_origin_or_close(websocket: WebSocket) -> bool:
    settings = get_settings()
    allowed = {o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()}
    if "*" in allowed:
        return True

    origin = websocket.headers.get("origin")
    if origin is not None and origin not in allowed:
        await websocket.close(code=1008)
        return False
    return True


@router.websocket("/ws/{room_code}")
async def ws_room(websocket: WebSocket, room_code: str):
    if not await _check_origin_or_close(websocket):
        return

    await websocket.accept()

    room_code = room_code.upper()
    pid = uuid.uuid4().hex[:10]
    repo = websocket.app.state.repo
    wsman = websocket.app.state.wsman
    await wsman.add(room_code, pid, websocket)
    logger.info(
        "peer %s connected to %s (%d peers)",
        pid,
        host_identity(room_code),
        await wsman.room_size(room_code),
    )

    # initial state right away; a missing room is reported, the socket stays open
    snap = await build_snapshot(repo, room_code)
    if snap.room is not None:
        await websocket.send_json(snap.model_dump())
    else:
        err = OutError(code="ROOM_NOT_FOUND", message=f"Room {room_code} not found").model_dump()
        await websocket.send_json(err)

    try:
        while True:
            try:
                raw = await websocket.receive_json()
            except json.JSONDecodeError as e:
                await websocket.send_json(OutError(code="BAD_MESSAGE", message=str(e)).model_dump())
                continue

            to_sender, to_room = await dispatch_message(
                app=websocket.app,
                room_code=room_code,
                pid=pid,
                raw=raw,
            )

            # unicast
            for e in to_sender:
                await websocket.send_json(e)

            # broadcast to every peer, the sender included (confirmation by echo)
            for e in to_room:
                await wsman.broadcast(room_code, e)

    except WebSocketDisconnect:
        logger.info("peer %s left %s", pid, room_code)

    finally:
        await wsman.remove(room_code, pid)
