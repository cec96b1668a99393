# mission/sync/base.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from mission.domain.common.types import ActionType
from mission.store.models import RoomStore, TeamStore, teams_from_wire, teams_to_wire

logger = logging.getLogger(__name__)

OnRoom = Callable[[Optional[RoomStore]], None]
OnTeams = Callable[[Dict[int, TeamStore]], None]
Unsubscribe = Callable[[], None]


class TransportUnavailable(Exception):
    """The other side (host or store) could not be reached."""


@dataclass
class Snapshot:
    room: Optional[RoomStore] = None
    teams: Dict[int, TeamStore] = field(default_factory=dict)

    @classmethod
    def from_wire(cls, room: Optional[Dict[str, Any]], teams: Optional[Dict[str, Any]]) -> "Snapshot":
        return cls(
            room=RoomStore.model_validate(room) if room else None,
            teams=teams_from_wire(teams or {}),
        )


class Delivery:
    """
    Hands snapshots to one subscriber's callbacks, each callback only when
    its half of the snapshot changed. The first push always delivers, so a
    subscriber sees None / {} when nothing exists yet.
    Callback errors are logged and never stop the feeding loop.
    """

    _UNSET = object()

    def __init__(self, on_room: OnRoom, on_teams: OnTeams) -> None:
        self.on_room = on_room
        self.on_teams = on_teams
        self._room_key: Any = self._UNSET
        self._teams_key: Any = self._UNSET

    def push(self, snap: Snapshot) -> None:
        room_key = snap.room.wire() if snap.room is not None else None
        if room_key != self._room_key:
            self._room_key = room_key
            self._call(self.on_room, snap.room)

        teams_key = teams_to_wire(snap.teams)
        if teams_key != self._teams_key:
            self._teams_key = teams_key
            self._call(self.on_teams, dict(snap.teams))

    def _call(self, cb: Callable[[Any], None], value: Any) -> None:
        try:
            cb(value)
        except Exception:
            logger.exception("sync callback %r failed", cb)


class Transport(ABC):
    """
    How one client exchanges room state with the others.

    Best effort and at most once: nothing is queued or replayed, and writers
    are not ordered against each other. Actions go to the room most recently
    fetched or subscribed.
    """

    room_code: Optional[str] = None

    @abstractmethod
    async def publish(self, room_code: str, room: RoomStore, teams: Optional[Dict[int, TeamStore]] = None) -> None:
        """Make `room` (and `teams`, when given) visible to every participant."""

    @abstractmethod
    def subscribe(self, room_code: str, on_room: OnRoom, on_teams: OnTeams) -> Unsubscribe:
        """Deliver every newer snapshot until the returned handle is called."""

    @abstractmethod
    async def send_action(self, action_type: ActionType, payload: Dict[str, Any]) -> bool:
        """Client -> host mutation request; False when it could not be sent."""

    @abstractmethod
    async def fetch(self, room_code: str) -> Snapshot:
        """One fresh full snapshot. Raises TransportUnavailable when nothing answers."""

    async def announce_deleted(self, room_code: str) -> None:
        """Tell connected participants a deleted room is gone, where the strategy can."""
        return None

    async def close(self) -> None:
        return None
