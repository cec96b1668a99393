from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mission.domain.common.types import LocationId


class WireModel(BaseModel):
    """
    Python side uses snake_case; stored JSON and the wire use camelCase
    (roomCode, teamId, ...) so every client speaks the same shape.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

    def wire_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class RoomStore(WireModel):
    room_code: str
    org_name: str
    total_teams: int = Field(ge=1)
    is_started: bool = False
    start_time: Optional[int] = None   # epoch ms, set exactly once on start
    is_ended: bool = False
    duration_minutes: int = Field(default=60, ge=1)


class TeamStore(WireModel):
    team_id: int
    name: str
    members: List[str] = Field(default_factory=list)
    current_location_id: Optional[LocationId] = None
    unlocked_locations: List[LocationId] = Field(default_factory=list)
    completed_locations: List[LocationId] = Field(default_factory=list)
    solved_sub_puzzles: List[str] = Field(default_factory=list)
    completion_times: Dict[LocationId, int] = Field(default_factory=dict)
    finish_time: Optional[int] = None
    hint_count: int = Field(default=0, ge=0)
    is_dead: bool = False


class RoomSummary(WireModel):
    room_code: str = Field(min_length=1)
    org_name: str = Field(min_length=1)
    created_at: int = 0
    is_ended: bool = False


class ClientSession(WireModel):
    """Local-only record a client keeps to resume after a reload."""
    room_code: Optional[str] = None
    team_id: Optional[int] = None
    name: Optional[str] = None
    current_location_id: Optional[LocationId] = None
    stage: str = "LOGIN_SELECT"   # kept loose so a corrupted value can be corrected on restore


# Team fields a client may send in a partial update (wire names)
TEAM_UPDATE_FIELDS = frozenset(
    TeamStore.model_fields[name].alias or name
    for name in TeamStore.model_fields
    if name != "team_id"
)


def teams_from_wire(raw: Dict) -> Dict[int, TeamStore]:
    return {int(k): TeamStore.model_validate(v) for k, v in (raw or {}).items()}


def teams_to_wire(teams: Dict[int, TeamStore]) -> Dict[str, dict]:
    return {str(k): t.wire() for k, t in sorted(teams.items())}

_TEAM_ALIAS_TO_FIELD = {(f.alias or n): n for n, f in TeamStore.model_fields.items()}


def team_field_name(wire_key: str) -> str:
    return _TEAM_ALIAS_TO_FIELD.get(wire_key, wire_key)
