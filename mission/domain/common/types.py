# mission/domain/common/types.py
from __future__ import annotations

from typing import Literal

LocationId = str

Stage = Literal[
    "LOGIN_SELECT",
    "ADMIN_LOGIN",
    "ADMIN_DASHBOARD",
    "USER_JOIN",
    "WAITING_ROOM",
    "INTRO",
    "MAP",
    "PUZZLE_VIEW",
    "SUCCESS",
    "FAILURE",
]

AdminView = Literal["LOBBY", "DASHBOARD"]

ActionType = Literal["JOIN_REQUEST", "UPDATE_TEAM", "SNAPSHOT"]

# Transient UI cues; never persisted
Signal = Literal["", "denied", "not_found", "offline", "room_gone", "hint_limit"]

ADMIN_STAGES: tuple[str, ...] = ("ADMIN_LOGIN", "ADMIN_DASHBOARD")
TERMINAL_STAGES: tuple[str, ...] = ("SUCCESS", "FAILURE")
IN_GAME_STAGES: tuple[str, ...] = ("PUZZLE_VIEW", "MAP", "INTRO", "SUCCESS", "FAILURE")
