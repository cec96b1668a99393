from __future__ import annotations

from .admin import AdminController, AdminState, TeamStatus
from .context import ClientContext
from .controller import GameController, GameState
from .factory import make_admin_controller, make_game_controller, make_transport
from .hints import FALLBACK_HINT, HintProvider, StaticHintProvider, ask_hint
from .session import SessionStore, parse_join_link, restore_session
from .timer import MissionTimer

__all__ = [
    "AdminController",
    "AdminState",
    "ClientContext",
    "FALLBACK_HINT",
    "GameController",
    "GameState",
    "HintProvider",
    "MissionTimer",
    "SessionStore",
    "StaticHintProvider",
    "TeamStatus",
    "ask_hint",
    "make_admin_controller",
    "make_game_controller",
    "make_transport",
    "parse_join_link",
    "restore_session",
]
