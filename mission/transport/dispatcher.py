# mission/transport/dispatcher.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from mission.domain.lifecycle.handlers import (
    handle_join_request,
    handle_snapshot,
    handle_update_team,
)
from mission.transport.protocols import (
    InJoinRequest,
    InSnapshot,
    InUpdateTeam,
    OutError,
    OutgoingEvent,
    parse_incoming,
)

DispatchResult = Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]
# (to_sender_events, to_room_events), each event is JSON dict


async def dispatch_message(
    *,
    app,
    room_code: str,
    pid: Optional[str],
    raw: Dict[str, Any],
) -> DispatchResult:
    """
    Transport layer calls this.
    - Parses + validates raw JSON
    - Routes to the correct domain handler
    - Returns (to_sender, to_room) events as JSON dicts

    NOTE: This file contains NO store key usage and NO game rules.
    """
    try:
        msg = parse_incoming(raw)
    except (ValidationError, ValueError) as e:
        err = OutError(code="BAD_MESSAGE", message=str(e)).model_dump()
        return [err], []

    if isinstance(msg, InJoinRequest):
        to_sender, to_room = await handle_join_request(app=app, room_code=room_code, pid=pid, msg=msg)
        return _dump(to_sender), _dump(to_room)

    if isinstance(msg, InUpdateTeam):
        to_sender, to_room = await handle_update_team(app=app, room_code=room_code, pid=pid, msg=msg)
        return _dump(to_sender), _dump(to_room)

    if isinstance(msg, InSnapshot):
        to_sender, to_room = await handle_snapshot(app=app, room_code=room_code, pid=pid, msg=msg)
        return _dump(to_sender), _dump(to_room)

    # If protocol exists but we didn't route it yet:
    err = OutError(code="NOT_IMPLEMENTED", message=f"Handler not implemented for type={msg.type}").model_dump()
    return [err], []


def _dump(events: List[OutgoingEvent]) -> List[Dict[str, Any]]:
    """
    Convert pydantic events -> JSON dicts.
    """
    return [e.model_dump() for e in events]
