# mission/transport/rooms.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from mission.store.models import RoomSummary

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _json(body: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers=CORS_HEADERS)


def _unavailable(request: Request) -> Optional[JSONResponse]:
    """Discovery degrades to an empty list when no registry backend is configured."""
    settings = request.app.state.settings
    if settings.REGISTRY_ENABLED and getattr(request.app.state, "repo", None) is not None:
        return None
    return _json(
        {
            "error": "Registry not configured",
            "rooms": [],
            "message": "Set REDIS_URL and REGISTRY_ENABLED=true to enable room discovery",
        }
    )


@router.options("/rooms")
async def rooms_options():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.get("/rooms")
async def list_rooms(request: Request):
    """Active rooms first, then newest first."""
    degraded = _unavailable(request)
    if degraded is not None:
        return degraded
    try:
        rooms = await request.app.state.repo.list_room_summaries()
    except Exception:
        logger.exception("room registry read failed")
        return _json({"error": "Internal server error", "rooms": []})
    return _json({"rooms": [r.wire() for r in rooms]})


@router.post("/rooms")
async def register_room(request: Request):
    degraded = _unavailable(request)
    if degraded is not None:
        return degraded

    try:
        body = await request.json()
    except json.JSONDecodeError:
        body = None
    if not isinstance(body, dict):
        body = {}
    code = str(body.get("roomCode") or "").strip().upper()
    if not code or not body.get("orgName"):
        return _json({"error": "roomCode and orgName are required"}, status_code=400)

    try:
        summary = RoomSummary.model_validate({**body, "roomCode": code})
    except ValidationError as e:
        return _json({"error": str(e)}, status_code=400)

    try:
        await request.app.state.repo.put_room_summary(summary)
    except Exception:
        logger.exception("room registry write failed code=%s", summary.room_code)
        return _json({"error": "Internal server error", "rooms": []})
    return _json({"success": True, "room": summary.wire()}, status_code=201)


@router.delete("/rooms")
async def unregister_room(request: Request, code: Optional[str] = None):
    degraded = _unavailable(request)
    if degraded is not None:
        return degraded

    code = (code or "").strip().upper()
    if not code:
        return _json({"error": "code parameter is required"}, status_code=400)

    try:
        await request.app.state.repo.delete_room_summary(code)
    except Exception:
        logger.exception("room registry delete failed code=%s", code)
        return _json({"error": "Internal server error", "rooms": []})
    return _json({"success": True})
