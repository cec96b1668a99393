# mission/domain/common/fsm.py
from __future__ import annotations

from mission.domain.common.types import ADMIN_STAGES, TERMINAL_STAGES, Stage


def can_transition_to(current: Stage, target: Stage) -> bool:
    """
    Validate client stage transitions driven by user intent.
    Sync-driven moves (auto start, success, expiry) use the dedicated helpers below.
    """
    transitions: dict[str, list[str]] = {
        "LOGIN_SELECT": ["ADMIN_LOGIN", "USER_JOIN"],
        "ADMIN_LOGIN": ["ADMIN_DASHBOARD", "LOGIN_SELECT"],
        "ADMIN_DASHBOARD": ["LOGIN_SELECT"],
        "USER_JOIN": ["WAITING_ROOM", "LOGIN_SELECT"],
        "WAITING_ROOM": ["PUZZLE_VIEW", "LOGIN_SELECT"],
        "INTRO": ["MAP", "PUZZLE_VIEW"],
        "MAP": ["PUZZLE_VIEW", "INTRO"],
        "PUZZLE_VIEW": ["MAP", "PUZZLE_VIEW", "SUCCESS"],
        "SUCCESS": ["LOGIN_SELECT"],
        "FAILURE": ["LOGIN_SELECT"],
    }
    return target in transitions.get(current, [])


def can_fail(current: Stage) -> bool:
    """Expiry supersedes every stage except admin screens and the two end screens."""
    return current not in ADMIN_STAGES and current not in TERMINAL_STAGES


def can_succeed(current: Stage) -> bool:
    return current not in ADMIN_STAGES and current != "SUCCESS"
