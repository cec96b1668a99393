# mission/transport/protocols.py
from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from mission.store.models import WireModel


# =========================
# Incoming (Peer -> Host)
# =========================

class InBase(BaseModel):
    type: str


class JoinPayload(WireModel):
    team_id: int
    name: str = Field(min_length=1, max_length=40)


class UpdateTeamPayload(WireModel):
    team_id: int
    # wire-named team fields; unknown keys are dropped by the host merge
    updates: Dict[str, Any] = Field(default_factory=dict)


class InJoinRequest(InBase):
    type: Literal["JOIN_REQUEST"] = "JOIN_REQUEST"
    payload: JoinPayload


class InUpdateTeam(InBase):
    type: Literal["UPDATE_TEAM"] = "UPDATE_TEAM"
    payload: UpdateTeamPayload


class InSnapshot(InBase):
    """Ask for a fresh SYNC_FULL (sent after every reconnect)."""
    type: Literal["SNAPSHOT"] = "SNAPSHOT"


IncomingMessage = Union[
    InJoinRequest,
    InUpdateTeam,
    InSnapshot,
]


# =========================
# Outgoing (Host -> Peer)
# =========================

class OutBase(BaseModel):
    type: str


class OutError(OutBase):
    type: Literal["ERROR"] = "ERROR"
    code: str
    message: str


class OutSyncFull(OutBase):
    """
    Full confirmed state. teams is keyed by the team id as a string,
    the way JSON object keys arrive on the other side.
    """
    type: Literal["SYNC_FULL"] = "SYNC_FULL"
    room: Optional[Dict[str, Any]] = None
    teams: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class OutRoomClosed(OutBase):
    type: Literal["ROOM_CLOSED"] = "ROOM_CLOSED"
    room_code: str


OutgoingEvent = Union[
    OutError,
    OutSyncFull,
    OutRoomClosed,
]


# =========================
# Parser helpers
# =========================

_INCOMING_BY_TYPE = {
    "JOIN_REQUEST": InJoinRequest,
    "UPDATE_TEAM": InUpdateTeam,
    "SNAPSHOT": InSnapshot,
}


def parse_incoming(payload: Dict[str, Any]) -> IncomingMessage:
    """
    Convert raw dict -> validated message model.
    Raises ValidationError if invalid.
    """
    t = payload.get("type") if isinstance(payload, dict) else None
    if not isinstance(t, str):
        raise ValidationError.from_exception_data(
            title="IncomingMessage",
            line_errors=[{"type": "value_error", "loc": ("type",), "input": t, "ctx": {"error": "Missing/invalid type"}}],
        )

    cls = _INCOMING_BY_TYPE.get(t)
    if cls is None:
        raise ValidationError.from_exception_data(
            title="IncomingMessage",
            line_errors=[{"type": "value_error", "loc": ("type",), "input": t, "ctx": {"error": f"Unknown message type: {t}"}}],
        )

    return cls.model_validate(payload)
