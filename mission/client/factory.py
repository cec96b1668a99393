# mission/client/factory.py
from __future__ import annotations

from typing import Literal, Optional

from mission.client.admin import AdminController
from mission.client.controller import GameController
from mission.client.hints import HintProvider
from mission.client.session import SessionStore
from mission.settings import Settings, get_settings
from mission.store.base import StateStore
from mission.sync.base import Transport
from mission.sync.host import HostTransport
from mission.sync.peer import PeerTransport
from mission.sync.polling import PollingTransport
from mission.sync.realtime import RealtimeTransport
from mission.transport.ws_manager import WSManager
from mission.util.timeutil import minutes_to_ms

Role = Literal["player", "admin"]


def make_transport(
    repo: Optional[StateStore] = None,
    settings: Optional[Settings] = None,
    role: Role = "player",
    wsman: Optional[WSManager] = None,
) -> Transport:
    """
    Pick the sync strategy named by SYNC_MODE.
    The store-backed modes need `repo`; a peer-mode player talks to
    SYNC_HOST_URL, while a peer-mode admin is the host itself: it writes the
    store and pushes to the relay peers held by `wsman`.
    """
    settings = settings or get_settings()
    mode = settings.SYNC_MODE.strip().lower()
    if mode == "peer" and role == "player":
        return PeerTransport(base_url=settings.SYNC_HOST_URL)
    if repo is None:
        raise ValueError(f"SYNC_MODE={mode} ({role}) needs a store")
    if mode == "peer":
        return HostTransport(repo, wsman if wsman is not None else WSManager())
    if mode == "polling":
        return PollingTransport(repo, interval=settings.POLL_INTERVAL_SEC)
    if mode == "realtime":
        return RealtimeTransport(repo)
    raise ValueError(f"unknown SYNC_MODE: {settings.SYNC_MODE}")


def make_game_controller(
    transport: Transport,
    settings: Optional[Settings] = None,
    hints: Optional[HintProvider] = None,
) -> GameController:
    settings = settings or get_settings()
    return GameController(
        transport,
        session=SessionStore(settings.SESSION_PATH),
        hints=hints,
        max_hints=settings.MAX_HINTS,
    )


def make_admin_controller(
    repo: StateStore,
    transport: Optional[Transport] = None,
    settings: Optional[Settings] = None,
    wsman: Optional[WSManager] = None,
) -> AdminController:
    settings = settings or get_settings()
    if transport is None:
        transport = make_transport(repo, settings, role="admin", wsman=wsman)
    return AdminController(
        repo,
        transport,
        per_hint_ms=minutes_to_ms(settings.HINT_PENALTY_MIN),
        default_duration_min=settings.DEFAULT_DURATION_MIN,
        poll_interval=settings.POLL_INTERVAL_SEC,
    )
