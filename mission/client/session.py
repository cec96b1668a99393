# mission/client/session.py
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

from pydantic import ValidationError

from mission.domain.common.types import IN_GAME_STAGES
from mission.domain.puzzles.catalog import FIRST_LOCATION
from mission.store.models import ClientSession, RoomStore, TeamStore, teams_from_wire, teams_to_wire

logger = logging.getLogger(__name__)

SESSION_KEY = "imf_user_session"
ROOM_KEY = "imf_room_data"
TEAMS_KEY = "imf_teams_data"


class SessionStore:
    """
    Device-local record that survives a restart: who this client is, where
    it was, and the last snapshot it saw (shown while the host is offline).
    One JSON file; each record lives under its fixed key and is overwritten
    whole on every save.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("session file %s unreadable; starting fresh", self.path, exc_info=True)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    # ----------------------------
    # Identity
    # ----------------------------
    def load(self) -> Optional[ClientSession]:
        raw = self._read().get(SESSION_KEY)
        if not raw:
            return None
        try:
            return ClientSession.model_validate(raw)
        except ValidationError:
            logger.warning("corrupt session record dropped")
            return None

    def save(self, session: ClientSession) -> None:
        data = self._read()
        data[SESSION_KEY] = session.wire()
        self._write(data)

    def clear(self) -> None:
        """Forget identity and cached snapshot ("return to main menu")."""
        data = self._read()
        for key in (SESSION_KEY, ROOM_KEY, TEAMS_KEY):
            data.pop(key, None)
        self._write(data)

    # ----------------------------
    # Last known snapshot
    # ----------------------------
    def save_snapshot(self, room: Optional[RoomStore], teams: Dict[int, TeamStore]) -> None:
        data = self._read()
        data[ROOM_KEY] = room.wire() if room is not None else None
        data[TEAMS_KEY] = teams_to_wire(teams)
        self._write(data)

    def load_snapshot(self) -> tuple[Optional[RoomStore], Dict[int, TeamStore]]:
        data = self._read()
        try:
            room = RoomStore.model_validate(data[ROOM_KEY]) if data.get(ROOM_KEY) else None
            teams = teams_from_wire(data.get(TEAMS_KEY) or {})
        except ValidationError:
            logger.warning("corrupt cached snapshot dropped")
            return None, {}
        return room, teams


def restore_session(session: Optional[ClientSession], room: Optional[RoomStore]) -> Optional[ClientSession]:
    """
    Decide whether a saved session still applies to the known room, and fix
    up its stage. None means start over at LOGIN_SELECT.

    - started room, saved in WAITING_ROOM  -> PUZZLE_VIEW at the first location
    - saved in an in-game stage            -> kept
    - anything else on a started room      -> PUZZLE_VIEW
    - not started yet                      -> WAITING_ROOM
    """
    if session is None or room is None:
        return None
    if session.room_code != room.room_code or not session.team_id:
        return None

    stage = session.stage
    location = session.current_location_id
    if room.is_started:
        if stage == "WAITING_ROOM":
            stage, location = "PUZZLE_VIEW", FIRST_LOCATION
        elif stage not in IN_GAME_STAGES:
            stage = "PUZZLE_VIEW"
        if stage == "PUZZLE_VIEW" and not location:
            location = FIRST_LOCATION
    else:
        stage, location = "WAITING_ROOM", None

    return session.model_copy(update={"stage": stage, "current_location_id": location})


def parse_join_link(url: str) -> Optional[str]:
    """Room code from a `?room=CODE` join link, upper-cased; None when absent."""
    values = parse_qs(urlparse(url).query).get("room")
    if not values:
        return None
    code = values[0].strip().upper()
    return code or None
